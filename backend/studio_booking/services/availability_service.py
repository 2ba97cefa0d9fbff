"""
Availability index: the free windows on a trainer's calendar.

Built from the trainer's AvailabilityBlock rows for each local date:

  1. Base windows: weekly "available" rules for that weekday. One-off
     "available" rules covering the date replace the weekly ones entirely.
  2. Minus "blocked" rules, weekly or one-off. A blocked rule without hours
     takes out the whole day.
  3. Minus busy intervals (active bookings), when given.
  4. Overlapping and touching windows are merged.

`get_available_windows` is pure; `get_trainer_availability` does the I/O and
caches the result in Redis.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.logging import get_logger
from studio_booking.models.availability import AvailabilityBlock
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.studio import Studio
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.availability import AvailabilityResponse, TimeWindow
from studio_booking.services.cache_service import (
    get_cached_availability,
    set_cached_availability,
)
from studio_booking.services.conflict_service import expire_stale_holds

logger = get_logger(__name__)

MAX_RANGE_DAYS = 62

Interval = tuple[datetime, datetime]


def _covers(block: AvailabilityBlock, day: date) -> bool:
    if block.specific_date is None:
        return False
    return block.specific_date <= day <= (block.end_date or block.specific_date)


def _local(day: date, hour: int, minute: int, zone: ZoneInfo) -> datetime:
    if hour >= 24:
        return datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=zone)
    return datetime.combine(day, time(hour, minute), tzinfo=zone)


def _block_interval(block: AvailabilityBlock, day: date, zone: ZoneInfo) -> Interval:
    if block.start_hour is None or block.end_hour is None:
        start = _local(day, 0, 0, zone)
        end = _local(day, 24, 0, zone)
    else:
        start = _local(day, block.start_hour, block.start_minute or 0, zone)
        end = _local(day, block.end_hour, block.end_minute or 0, zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _subtract(windows: list[Interval], cut: Interval) -> list[Interval]:
    cut_start, cut_end = cut
    remaining = []
    for start, end in windows:
        if cut_end <= start or cut_start >= end:
            remaining.append((start, end))
            continue
        if start < cut_start:
            remaining.append((start, cut_start))
        if cut_end < end:
            remaining.append((cut_end, end))
    return remaining


def _merge(windows: Iterable[Interval]) -> list[Interval]:
    merged: list[Interval] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def get_available_windows(
    blocks: Sequence[AvailabilityBlock],
    start_date: date,
    end_date: date,
    tz: str = "UTC",
    busy: Iterable[Interval] = (),
) -> list[TimeWindow]:
    """Free windows between start_date and end_date (inclusive, studio-local dates)."""
    zone = ZoneInfo(tz)
    busy = list(busy)
    windows: list[Interval] = []

    day = start_date
    while day <= end_date:
        weekday = day.isoweekday() % 7

        available = [b for b in blocks if b.block_type == "available"]
        overrides = [b for b in available if b.recurrence == "once" and _covers(b, day)]
        base = overrides or [
            b for b in available if b.recurrence == "weekly" and b.day_of_week == weekday
        ]

        day_windows = [
            _block_interval(b, day, zone)
            for b in base
            if b.start_hour is not None and b.end_hour is not None
        ]
        day_windows = [(s, e) for s, e in day_windows if s < e]

        for block in blocks:
            if block.block_type != "blocked":
                continue
            if (block.recurrence == "weekly" and block.day_of_week == weekday) or (
                block.recurrence == "once" and _covers(block, day)
            ):
                day_windows = _subtract(day_windows, _block_interval(block, day, zone))

        for interval in busy:
            day_windows = _subtract(day_windows, interval)

        windows.extend(day_windows)
        day += timedelta(days=1)

    return [TimeWindow(start=s, end=e) for s, e in _merge(windows)]


async def get_trainer_availability(
    db: AsyncSession,
    trainer_id: int,
    start_date: date,
    end_date: date,
) -> AvailabilityResponse:
    """Availability windows for one trainer, cache first."""
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="endDate must not be before startDate",
        )
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Date range may span at most {MAX_RANGE_DAYS} days",
        )

    trainer = await db.get(Trainer, trainer_id)
    if not trainer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Trainer {trainer_id} not found",
        )

    # Sweep first: an expired hold also invalidates the cached windows
    await expire_stale_holds(db, trainer_id)

    cached = await get_cached_availability(trainer_id, start_date.isoformat(), end_date.isoformat())
    if cached is not None:
        return AvailabilityResponse(
            trainer_id=trainer_id,
            start_date=start_date,
            end_date=end_date,
            windows=[TimeWindow(**window) for window in cached],
            cached=True,
        )

    studio = await db.get(Studio, trainer.studio_id)
    tz = studio.timezone if studio and studio.timezone else "UTC"
    zone = ZoneInfo(tz)

    blocks = (
        await db.execute(select(AvailabilityBlock).where(AvailabilityBlock.trainer_id == trainer_id))
    ).scalars().all()

    range_start = datetime.combine(start_date, time(0, 0), tzinfo=zone)
    range_end = datetime.combine(end_date + timedelta(days=1), time(0, 0), tzinfo=zone)
    bookings = (
        await db.execute(
            select(Booking).where(
                Booking.trainer_id == trainer_id,
                Booking.status.in_(BookingStatus.ACTIVE),
                Booking.scheduled_at < range_end,
                Booking.ends_at > range_start,
            )
        )
    ).scalars().all()

    windows = get_available_windows(
        blocks,
        start_date,
        end_date,
        tz,
        busy=[(b.scheduled_at, b.ends_at) for b in bookings],
    )

    await set_cached_availability(
        trainer_id,
        start_date.isoformat(),
        end_date.isoformat(),
        [window.model_dump(mode="json") for window in windows],
    )

    logger.debug(
        "availability_computed",
        trainer_id=trainer_id,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        windows=len(windows),
    )
    return AvailabilityResponse(
        trainer_id=trainer_id,
        start_date=start_date,
        end_date=end_date,
        windows=windows,
    )
