"""
FastAPI Application Entry Point.

Fleet Ledger Backend: chart of accounts, double-entry transaction log,
derived balances and the invoice lifecycle.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from backend.app.core.redis_client import close_redis, ping_redis

# Models must be imported before create_all
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.customer import Customer  # noqa: F401
from backend.app.models.vehicle import Vehicle  # noqa: F401
from backend.app.models.booking import Booking  # noqa: F401
from backend.app.models.account import Account  # noqa: F401
from backend.app.models.ledger_transaction import LedgerTransaction  # noqa: F401
from backend.app.models.ledger_entry import LedgerEntry  # noqa: F401
from backend.app.models.invoice import Invoice  # noqa: F401
from backend.app.models.invoice_line_item import InvoiceLineItem  # noqa: F401
from backend.app.models.payment import Payment  # noqa: F401

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup, release the Redis pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ledger schema ready", extra={"tables": len(Base.metadata.tables)})
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Double-entry ledger and invoicing core for fleet rental",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

for exc_class, handler in (
    (AppException, app_exception_handler),
    (HTTPException, http_exception_handler),
    (RequestValidationError, validation_exception_handler),
    (Exception, generic_exception_handler),
):
    app.add_exception_handler(exc_class, handler)

app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness plus the state of the balance cache backend.

    Redis being down does not make the service unhealthy; balances are
    folded from the ledger without it.
    """
    cache_ok = await ping_redis() if settings.balance_cache_enabled else None
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "balance_cache": {True: "up", False: "down", None: "disabled"}[cache_ok],
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.app_name} API",
        "docs": "/docs",
        "health": "/health",
    }
