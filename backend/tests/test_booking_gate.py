"""
Tests for the opening-hours and booking-model gate.
"""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from conftest import slot
from studio_booking.models import Studio
from studio_booking.services.booking_gate import check_opening_hours

# 2026-01-12 is a Monday
MONDAY_10 = datetime(2026, 1, 12, 10, 0, tzinfo=timezone.utc)

WEEKDAYS_9_TO_5 = {
    str(day): {"enabled": True, "slots": [{"start": "09:00", "end": "17:00"}]} for day in range(1, 6)
}
WEEKDAYS_9_TO_5["0"] = {"enabled": False, "slots": []}


def test_empty_config_allows_everything():
    assert check_opening_hours({}, MONDAY_10, 60) == (True, None)
    assert check_opening_hours(None, MONDAY_10, 60) == (True, None)


def test_inside_slot_allowed():
    assert check_opening_hours(WEEKDAYS_9_TO_5, MONDAY_10, 60) == (True, None)


def test_ending_exactly_at_close_allowed():
    start = MONDAY_10.replace(hour=16)
    assert check_opening_hours(WEEKDAYS_9_TO_5, start, 60) == (True, None)


def test_running_past_close_rejected():
    start = MONDAY_10.replace(hour=16, minute=30)
    allowed, reason = check_opening_hours(WEEKDAYS_9_TO_5, start, 60)
    assert allowed is False
    assert reason == "The selected time is outside studio operating hours (Monday 09:00-17:00)"


def test_start_with_seconds_past_close_rejected():
    """16:30:45 + 30 minutes ends at 17:00:45, after a 17:00 close."""
    start = MONDAY_10.replace(hour=16, minute=30, second=45)
    allowed, _ = check_opening_hours(WEEKDAYS_9_TO_5, start, 30)
    assert allowed is False


def test_start_with_seconds_before_open_rejected():
    start = MONDAY_10.replace(hour=8, minute=59, second=30)
    assert check_opening_hours(WEEKDAYS_9_TO_5, start, 30)[0] is False
    assert check_opening_hours(WEEKDAYS_9_TO_5, start.replace(hour=9, minute=0), 30) == (True, None)


def test_closed_day_rejected():
    sunday = datetime(2026, 1, 11, 10, 0, tzinfo=timezone.utc)
    assert check_opening_hours(WEEKDAYS_9_TO_5, sunday, 60) == (False, "The studio is closed on Sunday")


def test_missing_day_treated_as_closed():
    saturday = datetime(2026, 1, 17, 10, 0, tzinfo=timezone.utc)
    assert check_opening_hours(WEEKDAYS_9_TO_5, saturday, 60) == (False, "The studio is closed on Saturday")


def test_split_day_must_fit_one_slot():
    hours = {"1": {"enabled": True, "slots": [{"start": "06:00", "end": "12:00"}, {"start": "16:00", "end": "21:00"}]}}
    allowed, reason = check_opening_hours(hours, MONDAY_10.replace(hour=11, minute=30), 60)
    assert allowed is False
    assert reason.endswith("(Monday 06:00-12:00, 16:00-21:00)")
    assert check_opening_hours(hours, MONDAY_10.replace(hour=16), 60) == (True, None)


def test_hours_are_studio_local():
    """14:00 UTC is 09:00 in New York in January."""
    start = MONDAY_10.replace(hour=14)
    assert check_opening_hours(WEEKDAYS_9_TO_5, start, 60, "America/New_York") == (True, None)
    assert check_opening_hours(WEEKDAYS_9_TO_5, MONDAY_10, 60, "America/New_York")[0] is False


def test_booking_past_midnight_needs_slot_to_midnight():
    late = {"1": {"enabled": True, "slots": [{"start": "20:00", "end": "24:00"}]}}
    assert check_opening_hours(late, MONDAY_10.replace(hour=23), 60) == (True, None)
    assert check_opening_hours(late, MONDAY_10.replace(hour=23, minute=30), 60)[0] is False


@pytest.mark.asyncio
async def test_trainer_booking_outside_hours_rejected(client: AsyncClient, auth_headers, session_factory, studio):
    closed_everywhere = {str(day): {"enabled": False, "slots": []} for day in range(7)}
    async with session_factory() as session:
        await session.execute(update(Studio).where(Studio.id == studio.id).values(opening_hours=closed_everywhere))
        await session.commit()

    response = await client.post(
        "/api/v1/bookings/",
        json={"scheduled_at": slot().isoformat(), "duration_minutes": 60},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"].startswith("The studio is closed on")


@pytest.mark.asyncio
async def test_trainer_led_studio_rejects_public_booking(client: AsyncClient, session_factory, studio, trainer, service):
    async with session_factory() as session:
        await session.execute(update(Studio).where(Studio.id == studio.id).values(booking_model="trainer-led"))
        await session.commit()

    response = await client.post(
        "/api/v1/public/bookings",
        json={
            "trainer_id": trainer.id,
            "service_id": service.id,
            "scheduled_at": slot().isoformat(),
            "first_name": "Pat",
            "last_name": "Quinn",
            "email": "pat@example.com",
        },
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_trainer_led_studio_accepts_trainer_booking(client: AsyncClient, auth_headers, session_factory, studio):
    async with session_factory() as session:
        await session.execute(update(Studio).where(Studio.id == studio.id).values(booking_model="trainer-led"))
        await session.commit()

    response = await client.post(
        "/api/v1/bookings/",
        json={"scheduled_at": slot().isoformat(), "duration_minutes": 60},
        headers=auth_headers,
    )
    assert response.status_code == 201
