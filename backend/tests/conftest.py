"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own SQLite file so concurrent sessions in the
workflow tests contend on a real database lock. Set TEST_DATABASE_URL to run
the suite against PostgreSQL instead.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./booking_api_unused.db")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from booking_api.main import app
from booking_api.db.base import Base
from booking_api.db.session import build_engine, build_sessionmaker, get_db
from booking_api.core.security import create_access_token
from booking_api.models.user import User
from booking_api.models.event import Event


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = build_engine(url, echo=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine: AsyncEngine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(db_session: AsyncSession, obj):
    # No refresh after commit: it would reopen a write transaction on SQLite
    db_session.add(obj)
    await db_session.commit()
    return obj


def make_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="test@example.com", username="testuser"))


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="other@example.com", username="otheruser"))


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="admin@example.com", username="admin", role="admin"))


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return make_headers(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return make_headers(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return make_headers(admin_user)


def make_event(organizer: User, **overrides) -> Event:
    fields = dict(
        title="Test Concert",
        description="A test event",
        venue="Test Venue",
        date=datetime.now(timezone.utc) + timedelta(days=30),
        category="concert",
        total_seats=50,
        available_seats=50,
        ticket_price=Decimal("20.00"),
        status="active",
        organizer_id=organizer.id,
    )
    fields.update(overrides)
    return Event(**fields)


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, admin_user: User) -> Event:
    """Active event 30 days out: 50 seats at 20.00."""
    return await _add(db_session, make_event(admin_user))


@pytest_asyncio.fixture
async def sold_out_event(db_session: AsyncSession, admin_user: User) -> Event:
    return await _add(
        db_session,
        make_event(admin_user, title="Sold Out Show", available_seats=0),
    )


@pytest_asyncio.fixture
async def soon_event(db_session: AsyncSession, admin_user: User) -> Event:
    """Starts inside the cancellation window."""
    return await _add(
        db_session,
        make_event(admin_user, title="Tonight Only", date=datetime.now(timezone.utc) + timedelta(hours=2)),
    )


@pytest_asyncio.fixture
async def past_event(db_session: AsyncSession, admin_user: User) -> Event:
    return await _add(
        db_session,
        make_event(admin_user, title="Last Year", date=datetime.now(timezone.utc) - timedelta(days=1)),
    )


@pytest_asyncio.fixture
async def cancelled_event(db_session: AsyncSession, admin_user: User) -> Event:
    return await _add(
        db_session,
        make_event(admin_user, title="Called Off", status="cancelled"),
    )
