"""
Database session configuration.

Async SQLAlchemy engine and session factory. Production runs on PostgreSQL
through asyncpg; a sqlite+aiosqlite URL is accepted for local runs.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def _engine_options(database_url: str) -> dict:
    """Pool sizing only applies to server databases."""
    options = {"echo": settings.db_echo, "future": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# No autoflush: domain code flushes explicitly after validating.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Endpoints commit explicitly. Anything left uncommitted when the request
    fails is rolled back before the session is closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
