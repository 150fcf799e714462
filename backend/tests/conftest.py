"""
Centralized Test Configuration.
"""

import pytest
from datetime import date
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.config import settings
from backend.app.core.redis_client import get_redis
import backend.app.core.redis_client as redis_client_module
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.ledger_enums import AccountType
from backend.app.models.customer import Customer
from backend.app.models.vehicle import Vehicle
from backend.app.models.booking import Booking

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
    
    async def ping(self):
        if self._closed:
            return False
        return True
    
    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)
        
    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True
    
    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0
        
    async def flushdb(self):
        if not self._closed:
            self.store = {}
        
    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """
    
    # Patch the global redis client used by the balance cache
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session
    
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield
    
    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    await redis_client_session.flushdb()
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def session_factory():
    """Factory for tests that need several independent sessions."""
    return TestingSessionLocal

@pytest.fixture
async def chart(db_session):
    """Default chart of accounts, keyed by role."""
    accounts = {
        "cash": await LedgerStore.create_account(
            db_session, settings.cash_account_code, "Cash", AccountType.ASSET
        ),
        "receivable": await LedgerStore.create_account(
            db_session, settings.receivable_account_code, "Accounts Receivable", AccountType.ASSET
        ),
        "tax_payable": await LedgerStore.create_account(
            db_session, settings.tax_payable_account_code, "VAT Payable", AccountType.LIABILITY
        ),
        "revenue": await LedgerStore.create_account(
            db_session, settings.revenue_account_code, "Rental Revenue", AccountType.REVENUE
        ),
        "expense": await LedgerStore.create_account(
            db_session, "5000", "Vehicle Maintenance Expense", AccountType.EXPENSE
        ),
    }
    await db_session.commit()
    return accounts

@pytest.fixture
async def customer(db_session):
    customer = Customer(code="CUST-001", name="Acme Logistics", email="billing@acme.test")
    db_session.add(customer)
    await db_session.commit()
    return customer

@pytest.fixture
async def booking(db_session, customer):
    vehicle = Vehicle(plate_number="DXB-12345", make="Toyota", model="Corolla", year=2023, daily_rate=Decimal("150.00"))
    db_session.add(vehicle)
    await db_session.flush()
    booking = Booking(
        customer_id=customer.id,
        vehicle_id=vehicle.id,
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 5),
        status="CONFIRMED",
    )
    db_session.add(booking)
    await db_session.commit()
    return booking
