"""
Tests for public bookings and guest identity resolution.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update

from conftest import slot
from studio_booking.models import Client, Service, Studio
from studio_booking.services.identity_service import resolve_public_client


def _body(trainer, service, email: str = "pat@example.com", **overrides) -> dict:
    body = {
        "trainer_id": trainer.id,
        "service_id": service.id,
        "scheduled_at": slot().isoformat(),
        "first_name": "Pat",
        "last_name": "Quinn",
        "email": email,
        "phone": "555-0100",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_existing_studio_client_reused(db_session, studio, test_client):
    client, has_account = await resolve_public_client(db_session, studio.id, "SAM@Example.com")

    assert client.id == test_client.id
    assert has_account is True


@pytest.mark.asyncio
async def test_account_holder_from_other_studio_linked(db_session, studio):
    other = Studio(name="Downtown Yoga", opening_hours={})
    db_session.add(other)
    await db_session.flush()
    elsewhere = Client(
        studio_id=other.id,
        email="robin@example.com",
        first_name="Robin",
        last_name="Hart",
        account_id="acct-robin",
        is_guest=False,
    )
    db_session.add(elsewhere)
    await db_session.flush()

    client, has_account = await resolve_public_client(
        db_session, studio.id, "robin@example.com", first_name="Rob", last_name="H"
    )

    assert has_account is True
    assert client.id != elsewhere.id
    assert client.studio_id == studio.id
    assert client.account_id == "acct-robin"
    assert client.is_guest is False
    assert (client.first_name, client.last_name) == ("Robin", "Hart")
    assert client.source == "public_booking"


@pytest.mark.asyncio
async def test_guest_elsewhere_not_linked(db_session, studio):
    other = Studio(name="Downtown Yoga", opening_hours={})
    db_session.add(other)
    await db_session.flush()
    db_session.add(Client(studio_id=other.id, email="guest@example.com", is_guest=True))
    await db_session.flush()

    client, has_account = await resolve_public_client(db_session, studio.id, "guest@example.com")

    assert has_account is False
    assert client.is_guest is True
    assert client.account_id is None


@pytest.mark.asyncio
async def test_unknown_email_creates_guest(db_session, studio, trainer):
    client, has_account = await resolve_public_client(
        db_session, studio.id, "New.Person@Example.com", first_name="New", last_name="Person", invited_by=trainer.id
    )

    assert has_account is False
    assert client.email == "new.person@example.com"
    assert client.is_guest is True
    assert client.source == "public_booking"
    assert client.invited_by == trainer.id


@pytest.mark.asyncio
async def test_paid_service_held_pending_payment(client: AsyncClient, trainer, service, notifier):
    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "soft-hold"
    assert data["requires_payment"] is True
    assert data["price_cents"] == 6500
    assert data["hold_expiry"] is not None
    assert data["has_existing_account"] is False
    assert notifier.of_type("booking_confirmed") == []


@pytest.mark.asyncio
async def test_free_service_confirmed(client: AsyncClient, trainer, free_service, notifier):
    response = await client.post("/api/v1/public/bookings", json=_body(trainer, free_service))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["requires_payment"] is False
    assert data["hold_expiry"] is None

    confirmed = notifier.of_type("booking_confirmed")
    assert len(confirmed) == 1
    assert confirmed[0].client_email == "pat@example.com"
    assert confirmed[0].duration_minutes == 30


@pytest.mark.asyncio
async def test_zero_price_is_free(client: AsyncClient, session_factory, trainer, service):
    async with session_factory() as session:
        await session.execute(update(Service).where(Service.id == service.id).values(price_cents=0))
        await session.commit()

    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service))
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_studio_hold_length_overrides_default(client: AsyncClient, session_factory, studio, trainer, service):
    async with session_factory() as session:
        await session.execute(update(Studio).where(Studio.id == studio.id).values(soft_hold_minutes=30))
        await session.commit()

    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service))
    hold_expiry = datetime.fromisoformat(response.json()["hold_expiry"])
    assert hold_expiry <= datetime.now(timezone.utc) + timedelta(minutes=30)
    assert hold_expiry > datetime.now(timezone.utc) + timedelta(minutes=29)


@pytest.mark.asyncio
async def test_holds_disabled_confirms_paid_booking(client: AsyncClient, session_factory, studio, trainer, service):
    async with session_factory() as session:
        await session.execute(update(Studio).where(Studio.id == studio.id).values(soft_holds_enabled=False))
        await session.commit()

    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service))
    assert response.json()["status"] == "confirmed"
    assert response.json()["requires_payment"] is True


@pytest.mark.asyncio
async def test_existing_client_books_publicly(client: AsyncClient, trainer, service, test_client):
    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service, email="sam@example.com"))
    data = response.json()
    assert data["client_id"] == test_client.id
    assert data["has_existing_account"] is True


@pytest.mark.asyncio
async def test_private_service_not_bookable(client: AsyncClient, session_factory, trainer, service):
    async with session_factory() as session:
        await session.execute(update(Service).where(Service.id == service.id).values(is_public=False))
        await session.commit()

    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_trainer(client: AsyncClient, trainer, service):
    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service, trainer_id=99999))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_email(client: AsyncClient, trainer, service):
    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service, email="not-an-email"))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_rejected_booking_leaves_no_guest(client: AsyncClient, session_factory, trainer, service):
    """A conflict rolls back the whole request, including the new guest client."""
    await client.post("/api/v1/public/bookings", json=_body(trainer, service, email="first@example.com"))

    response = await client.post("/api/v1/public/bookings", json=_body(trainer, service, email="second@example.com"))
    assert response.status_code == 409

    async with session_factory() as session:
        count = await session.execute(
            select(func.count()).select_from(Client).where(Client.email == "second@example.com")
        )
        assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_client_without_account_elsewhere_not_linked(db_session, studio):
    """A client added by hand in another studio has no account to link to."""
    other = Studio(name="Downtown Yoga", opening_hours={})
    db_session.add(other)
    await db_session.flush()
    db_session.add(Client(studio_id=other.id, email="manual@example.com", is_guest=False, account_id=None))
    await db_session.flush()

    client, has_account = await resolve_public_client(db_session, studio.id, "manual@example.com")

    assert has_account is False
    assert client.is_guest is True
    assert client.account_id is None
