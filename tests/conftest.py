# tests/conftest.py
import os

# Point the application at a throwaway database before anything imports it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SMTP_HOST", "")

import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.security import CurrentUser
from storefront.database import Base, build_engine, build_sessionmaker
from storefront.dependencies import get_db, get_notifier
from storefront.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="session")
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        SMTP_HOST="",
        STORE_NAME="Test Store",
        RESERVATION_MAX_RETRIES=3,
    )


@pytest.fixture(scope="function")
async def test_engine():
    """In-memory SQLite engine with a fresh schema per test."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_sessionmaker(test_engine)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier(mocker):
    """Notification service double; records calls, sends nothing."""
    service = mocker.MagicMock()
    service.notify_order_placed = mocker.AsyncMock(return_value=True)
    service.notify_order_status_changed = mocker.AsyncMock(return_value=True)
    return service


@pytest.fixture
def customer_user():
    return CurrentUser(id=101, email="shopper@example.com", role="customer")


@pytest.fixture
def test_client(notifier):
    """
    TestClient wired to its own in-memory database.

    All database work, seeding included, runs on the client's event loop:
    use ``test_client.run(coro_fn, *args)`` to execute async setup there.
    """
    engine = build_engine(TEST_DATABASE_URL)
    sessions = build_sessionmaker(engine)

    async def override_get_db():
        async with sessions() as session:
            yield session

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def with_session(fn, *args):
        async with sessions() as session:
            return await fn(session, *args)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as client:
        client.portal.call(create_schema)
        client.run = lambda fn, *args: client.portal.call(with_session, fn, *args)
        yield client
        client.portal.call(engine.dispose)
    app.dependency_overrides.clear()
