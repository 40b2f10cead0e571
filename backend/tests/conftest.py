"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.config import Settings
from backend.app.core.reliability import CircuitBreaker
from backend.app.domain.booking.booking_service import BookingRequestEngine
from backend.app.models.enums import UserRole
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from backend.tests.factories import RecordingPushGateway, FakeClock, create_user, create_car

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


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


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def push_gateway():
    return RecordingPushGateway()


@pytest.fixture
def dispatcher(push_gateway):
    """Inline dispatcher: deliveries finish before dispatch() returns."""
    return NotificationDispatcher(
        TestingSessionLocal,
        push_gateway=push_gateway,
        breaker=CircuitBreaker(failure_threshold=3, reset_timeout=60),
        background=False,
    )


@pytest.fixture(autouse=True)
def apply_overrides(dispatcher):
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Each test runs on its own event loop; don't carry the connection over
    await engine.dispose()


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
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        driver_daily_request_limit=5,
        operator_daily_invitation_limit=5,
        booking_request_expiry_days=3,
        car_inactivity_days=7,
        notification_retention_days=7,
    )


@pytest.fixture
def booking_engine(db_session, dispatcher, test_settings, clock):
    return BookingRequestEngine(db_session, dispatcher, config=test_settings, clock=clock)


@pytest.fixture
async def operator(db_session):
    return await create_user(
        db_session, "+919800000001", UserRole.OPERATOR, name="Ravi Patil",
        agency_name="Patil Travels", push_token="op-device",
    )


@pytest.fixture
async def driver(db_session):
    return await create_user(db_session, "+919800000002", UserRole.DRIVER, name="Sunil Jadhav", push_token="drv-device")


@pytest.fixture
async def other_driver(db_session):
    return await create_user(db_session, "+919800000003", UserRole.DRIVER, name="Amit Shinde")


@pytest.fixture
async def car(db_session, operator):
    """Fresh car relative to the fake clock (T0)."""
    return await create_car(db_session, operator)


@pytest.fixture
async def live_car(db_session, operator):
    """Fresh car relative to the real clock, for API tests."""
    return await create_car(db_session, operator, registration_number="MH14CD5678", last_active_at=datetime.utcnow())
