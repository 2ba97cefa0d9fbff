"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file database (aiosqlite). HTTP requests use a
fresh session per request that commits or rolls back like the real get_db,
so tests see exactly what a request would have persisted.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studio_booking.main import app
from studio_booking.db.base import Base
from studio_booking.db.session import get_db
from studio_booking.core.security import create_access_token
from studio_booking.models import Client, ClientPackage, Package, Service, Studio, Trainer
from studio_booking.services import notification_service
from studio_booking.services.interfaces import Notifier


class RecordingNotifier(Notifier):
    """Keeps every event handed to it."""

    def __init__(self):
        self.events = []

    async def send(self, event) -> str:
        self.events.append(event)
        return "logged"

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.type == event_type]


def slot(days: int = 2, hour: int = 10, minute: int = 0) -> datetime:
    """A UTC start time `days` from today at hour:minute."""
    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=days, hours=hour, minutes=minute)


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a throwaway database, yield a sessionmaker, then dispose."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for calling services directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def notifier(monkeypatch) -> RecordingNotifier:
    recorder = RecordingNotifier()
    monkeypatch.setattr(notification_service, "get_notifier", lambda: recorder)
    return recorder


async def _persist(session_factory, obj):
    async with session_factory() as session:
        session.add(obj)
        await session.commit()
        await session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def studio(session_factory) -> Studio:
    """Client-self-book studio, soft-holds on, always open."""
    return await _persist(
        session_factory,
        Studio(
            name="Northside Strength",
            booking_model="client-self-book",
            soft_holds_enabled=True,
            soft_hold_minutes=None,
            opening_hours={},
            timezone="UTC",
        ),
    )


@pytest_asyncio.fixture
async def trainer(session_factory, studio: Studio) -> Trainer:
    return await _persist(
        session_factory,
        Trainer(studio_id=studio.id, first_name="Dana", last_name="Reyes", email="dana@northside.test"),
    )


@pytest_asyncio.fixture
async def test_client(session_factory, studio: Studio) -> Client:
    return await _persist(
        session_factory,
        Client(
            studio_id=studio.id,
            email="sam@example.com",
            first_name="Sam",
            last_name="Lee",
            account_id="acct-sam",
            is_guest=False,
        ),
    )


@pytest_asyncio.fixture
async def service(session_factory, studio: Studio) -> Service:
    """Paid 60-minute personal training session, 1 credit."""
    return await _persist(
        session_factory,
        Service(
            studio_id=studio.id,
            name="Personal Training",
            duration_minutes=60,
            credits_required=1,
            price_cents=6500,
            is_public=True,
        ),
    )


@pytest_asyncio.fixture
async def free_service(session_factory, studio: Studio) -> Service:
    return await _persist(
        session_factory,
        Service(
            studio_id=studio.id,
            name="Intro Session",
            duration_minutes=30,
            credits_required=1,
            price_cents=None,
            is_intro_session=True,
            is_public=True,
        ),
    )


@pytest_asyncio.fixture
async def package(session_factory, studio: Studio) -> Package:
    return await _persist(
        session_factory,
        Package(studio_id=studio.id, name="10 Pack", session_count=10, validity_days=90, price_cents=55000),
    )


@pytest_asyncio.fixture
async def client_package(session_factory, test_client: Client, package: Package) -> ClientPackage:
    """sessions_total=10, sessions_used=0."""
    return await _persist(
        session_factory,
        ClientPackage(
            client_id=test_client.id,
            package_id=package.id,
            sessions_total=10,
            sessions_used=0,
            purchased_at=datetime.now(timezone.utc),
            expires_at=datetime.now(timezone.utc) + timedelta(days=90),
            status="active",
        ),
    )


@pytest_asyncio.fixture
async def auth_token(trainer: Trainer) -> str:
    """Generate a JWT token for the test trainer."""
    return create_access_token(data={"sub": str(trainer.id)})


@pytest_asyncio.fixture
async def auth_headers(auth_token: str) -> dict:
    """Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {auth_token}"}
