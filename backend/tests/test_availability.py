"""
Tests for the availability index.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import AsyncClient
from sqlalchemy import update

from studio_booking.models import AvailabilityBlock, Booking
from studio_booking.services import cache_service
from studio_booking.services.availability_service import get_available_windows

MONDAY = date(2026, 1, 12)


def _weekday(day: date) -> int:
    return day.isoweekday() % 7


def _weekly(day: date, start: int, end: int, block_type: str = "available", trainer_id: int = 1, **extra) -> AvailabilityBlock:
    return AvailabilityBlock(
        trainer_id=trainer_id,
        block_type=block_type,
        recurrence="weekly",
        day_of_week=_weekday(day),
        start_hour=start,
        start_minute=extra.pop("start_minute", 0),
        end_hour=end,
        end_minute=extra.pop("end_minute", 0),
    )


def _once(day: date, start, end, block_type: str = "available", end_date=None) -> AvailabilityBlock:
    return AvailabilityBlock(
        trainer_id=1,
        block_type=block_type,
        recurrence="once",
        specific_date=day,
        end_date=end_date,
        start_hour=start,
        start_minute=0,
        end_hour=end,
        end_minute=0,
    )


def _utc(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def _spans(windows) -> list[tuple[datetime, datetime]]:
    return [(w.start, w.end) for w in windows]


def test_weekly_rule_applies_to_matching_weekday_only():
    blocks = [_weekly(MONDAY, 9, 12)]
    windows = get_available_windows(blocks, MONDAY, MONDAY + timedelta(days=7))

    assert _spans(windows) == [
        (_utc(MONDAY, 9), _utc(MONDAY, 12)),
        (_utc(MONDAY + timedelta(days=7), 9), _utc(MONDAY + timedelta(days=7), 12)),
    ]


def test_one_off_available_replaces_weekly_rules():
    blocks = [_weekly(MONDAY, 9, 17), _once(MONDAY, 13, 15)]
    windows = get_available_windows(blocks, MONDAY, MONDAY)

    assert _spans(windows) == [(_utc(MONDAY, 13), _utc(MONDAY, 15))]


def test_blocked_window_is_subtracted():
    blocks = [_weekly(MONDAY, 9, 17), _once(MONDAY, 12, 13, block_type="blocked")]
    windows = get_available_windows(blocks, MONDAY, MONDAY)

    assert _spans(windows) == [
        (_utc(MONDAY, 9), _utc(MONDAY, 12)),
        (_utc(MONDAY, 13), _utc(MONDAY, 17)),
    ]


def test_whole_day_block_across_date_range():
    tuesday = MONDAY + timedelta(days=1)
    blocks = [
        _weekly(MONDAY, 9, 17),
        _weekly(tuesday, 9, 17),
        _once(MONDAY, None, None, block_type="blocked", end_date=tuesday),
    ]
    assert get_available_windows(blocks, MONDAY, tuesday) == []


def test_weekly_blocked_rule():
    blocks = [_weekly(MONDAY, 9, 17), _weekly(MONDAY, 9, 10, block_type="blocked")]
    windows = get_available_windows(blocks, MONDAY, MONDAY)

    assert _spans(windows) == [(_utc(MONDAY, 10), _utc(MONDAY, 17))]


def test_busy_intervals_are_subtracted():
    blocks = [_weekly(MONDAY, 9, 12)]
    busy = [(_utc(MONDAY, 10), _utc(MONDAY, 11))]
    windows = get_available_windows(blocks, MONDAY, MONDAY, busy=busy)

    assert _spans(windows) == [
        (_utc(MONDAY, 9), _utc(MONDAY, 10)),
        (_utc(MONDAY, 11), _utc(MONDAY, 12)),
    ]


def test_overlapping_and_touching_rules_merge():
    blocks = [_weekly(MONDAY, 9, 11), _weekly(MONDAY, 10, 12), _weekly(MONDAY, 12, 13)]
    windows = get_available_windows(blocks, MONDAY, MONDAY)

    assert _spans(windows) == [(_utc(MONDAY, 9), _utc(MONDAY, 13))]


def test_rules_are_local_to_studio_timezone():
    """09:00-12:00 in New York in January is 14:00-17:00 UTC."""
    blocks = [_weekly(MONDAY, 9, 12)]
    windows = get_available_windows(blocks, MONDAY, MONDAY, tz="America/New_York")

    assert _spans(windows) == [(_utc(MONDAY, 14), _utc(MONDAY, 17))]


def test_no_rules_no_windows():
    assert get_available_windows([], MONDAY, MONDAY + timedelta(days=6)) == []


@pytest.mark.asyncio
async def test_availability_endpoint_excludes_bookings(
    client: AsyncClient, auth_headers, session_factory, trainer
):
    day = (datetime.now(timezone.utc) + timedelta(days=3)).date()
    async with session_factory() as session:
        session.add(_weekly(day, 9, 12, trainer_id=trainer.id))
        await session.commit()

    booked = await client.post(
        "/api/v1/bookings/",
        json={"scheduled_at": _utc(day, 10).isoformat(), "duration_minutes": 60},
        headers=auth_headers,
    )
    assert booked.status_code == 201

    response = await client.get(
        f"/api/v1/availability/{trainer.id}",
        params={"startDate": day.isoformat(), "endDate": day.isoformat()},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["cached"] is False
    spans = [(datetime.fromisoformat(w["start"]), datetime.fromisoformat(w["end"])) for w in data["windows"]]
    assert spans == [(_utc(day, 9), _utc(day, 10)), (_utc(day, 11), _utc(day, 12))]


@pytest.mark.asyncio
async def test_availability_unknown_trainer(client: AsyncClient):
    response = await client.get(
        "/api/v1/availability/99999",
        params={"startDate": "2026-01-12", "endDate": "2026-01-13"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_availability_inverted_range(client: AsyncClient, trainer):
    response = await client.get(
        f"/api/v1/availability/{trainer.id}",
        params={"startDate": "2026-01-13", "endDate": "2026-01-12"},
    )
    assert response.status_code == 400


@pytest_asyncio.fixture
async def cache(monkeypatch):
    """In-process redis behind the availability cache."""
    server = FakeAsyncRedis(decode_responses=True)

    async def _get_redis():
        return server

    monkeypatch.setattr(cache_service, "get_redis", _get_redis)
    yield server
    await server.aclose()


async def _hold_ten_oclock(client: AsyncClient, session_factory, trainer, service) -> tuple[date, int]:
    day = (datetime.now(timezone.utc) + timedelta(days=3)).date()
    async with session_factory() as session:
        session.add(_weekly(day, 9, 12, trainer_id=trainer.id))
        await session.commit()

    response = await client.post(
        "/api/v1/public/bookings",
        json={
            "trainer_id": trainer.id,
            "service_id": service.id,
            "scheduled_at": _utc(day, 10).isoformat(),
            "first_name": "Pat",
            "last_name": "Quinn",
            "email": "pat@example.com",
        },
    )
    assert response.json()["status"] == "soft-hold"
    return day, response.json()["booking_id"]


async def _lapse_hold(session_factory, booking_id: int):
    async with session_factory() as session:
        await session.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(hold_expiry=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await session.commit()


async def _windows(client: AsyncClient, trainer, day: date) -> dict:
    response = await client.get(
        f"/api/v1/availability/{trainer.id}",
        params={"startDate": day.isoformat(), "endDate": day.isoformat()},
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_repeat_read_served_from_cache(client: AsyncClient, session_factory, trainer, service, cache):
    day, _ = await _hold_ten_oclock(client, session_factory, trainer, service)

    first = await _windows(client, trainer, day)
    second = await _windows(client, trainer, day)

    assert first["cached"] is False
    assert second["cached"] is True
    assert second["windows"] == first["windows"]
    assert len(first["windows"]) == 2


@pytest.mark.asyncio
async def test_lapsed_hold_frees_cached_window(client: AsyncClient, session_factory, trainer, service, cache):
    day, hold_id = await _hold_ten_oclock(client, session_factory, trainer, service)
    assert len((await _windows(client, trainer, day))["windows"]) == 2

    await _lapse_hold(session_factory, hold_id)

    data = await _windows(client, trainer, day)
    assert data["cached"] is False
    assert len(data["windows"]) == 1
    assert datetime.fromisoformat(data["windows"][0]["start"]) == _utc(day, 9)
    assert datetime.fromisoformat(data["windows"][0]["end"]) == _utc(day, 12)


@pytest.mark.asyncio
async def test_hold_swept_by_booking_list_clears_cache(
    client: AsyncClient, auth_headers, session_factory, trainer, service, cache
):
    day, hold_id = await _hold_ten_oclock(client, session_factory, trainer, service)
    await _windows(client, trainer, day)
    assert [key async for key in cache.scan_iter(match=f"availability:{trainer.id}:*")]

    await _lapse_hold(session_factory, hold_id)
    listing = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert [b["status"] for b in listing.json()] == ["cancelled"]

    assert [key async for key in cache.scan_iter(match=f"availability:{trainer.id}:*")] == []
    assert len((await _windows(client, trainer, day))["windows"]) == 1
