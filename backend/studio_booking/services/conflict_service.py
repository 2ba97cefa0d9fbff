"""
Conflict detection for a trainer's calendar.

CONCURRENCY STRATEGY: Application check + exclusion constraint
==============================================================

Problem:
  Two requests for overlapping slots on the same trainer both run
  "SELECT overlapping bookings", both see none, both INSERT.
  Result: double-booked trainer.

Solution:
  1. Fast path (here): fetch the trainer's active bookings that reach into
     the candidate window and scan them. Gives a friendly 409 with the
     blocking booking in the log, and works on every backend.
  2. Authoritative guard (database): on PostgreSQL the bookings table
     carries an EXCLUDE USING gist constraint over
     (trainer_id, tstzrange(scheduled_at, ends_at, '[)')) for active
     statuses. The loser of a race fails at flush time; booking_service
     translates that IntegrityError into the same 409.

Intervals are half-open: a booking ending at 11:00 and one starting at
11:00 never conflict.

Soft-holds expire lazily. `expire_stale_holds` flips every soft-hold past
its expiry to cancelled and clears the trainer's cached availability. It
runs, scoped to the rows being read, before every booking list or fetch,
conflict check and availability read, so a stale hold never blocks a new
reservation or shows as busy.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_booking_attempt, record_holds_expired
from studio_booking.db.base import utcnow
from studio_booking.models.booking import NO_OVERLAP_CONSTRAINT, Booking, BookingStatus
from studio_booking.services.cache_service import invalidate_availability_cache

logger = get_logger(__name__)

CONFLICT_DETAIL = "Time slot conflict with existing booking"


def booking_end(scheduled_at: datetime, duration_minutes: int) -> datetime:
    return scheduled_at + timedelta(minutes=duration_minutes)


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    return a_start < b_end and a_end > b_start


def is_overlap_violation(exc: IntegrityError) -> bool:
    """True when the IntegrityError came from the no-overlap exclusion constraint."""
    return NO_OVERLAP_CONSTRAINT in str(exc.orig)


async def expire_stale_holds(
    db: AsyncSession,
    trainer_id: Optional[int] = None,
    studio_id: Optional[int] = None,
    booking_id: Optional[int] = None,
) -> int:
    """
    Cancel every soft-hold in scope whose hold_expiry has passed and drop the
    cached availability of each trainer that got a slot back.
    Returns the number of bookings swept.
    """
    query = select(Booking.id, Booking.trainer_id).where(
        Booking.status == BookingStatus.SOFT_HOLD,
        Booking.hold_expiry < utcnow(),
    )
    if trainer_id is not None:
        query = query.where(Booking.trainer_id == trainer_id)
    if studio_id is not None:
        query = query.where(Booking.studio_id == studio_id)
    if booking_id is not None:
        query = query.where(Booking.id == booking_id)

    stale = (await db.execute(query)).all()
    if not stale:
        return 0

    # Status re-checked so a hold confirmed since the read is left alone
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id.in_([row.id for row in stale]),
            Booking.status == BookingStatus.SOFT_HOLD,
        )
        .values(status=BookingStatus.CANCELLED, hold_expiry=None)
        .execution_options(synchronize_session="fetch")
    )

    expired = result.rowcount or 0
    if expired:
        trainer_ids = sorted({row.trainer_id for row in stale})
        for affected in trainer_ids:
            await invalidate_availability_cache(affected)
        logger.info("holds_expired", trainer_ids=trainer_ids, studio_id=studio_id, count=expired)
        record_holds_expired(expired)
    return expired


async def find_conflict(
    db: AsyncSession,
    trainer_id: int,
    scheduled_at: datetime,
    duration_minutes: int,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """Return the first active booking overlapping the candidate interval, if any."""
    candidate_end = booking_end(scheduled_at, duration_minutes)

    query = (
        select(Booking)
        .where(
            Booking.trainer_id == trainer_id,
            Booking.status.in_(BookingStatus.ACTIVE),
            Booking.scheduled_at < candidate_end,
            Booking.ends_at > scheduled_at,
        )
        .order_by(Booking.scheduled_at)
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query)
    now = utcnow()

    for existing in result.scalars():
        # Expired holds no longer occupy the slot, swept or not
        if existing.status == BookingStatus.SOFT_HOLD and existing.hold_expiry and existing.hold_expiry < now:
            continue
        existing_end = booking_end(existing.scheduled_at, existing.duration_minutes)
        if intervals_overlap(scheduled_at, candidate_end, existing.scheduled_at, existing_end):
            return existing

    return None


async def ensure_no_conflict(
    db: AsyncSession,
    trainer_id: int,
    scheduled_at: datetime,
    duration_minutes: int,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """Raise 409 if the trainer is already booked for any part of the interval."""
    await expire_stale_holds(db, trainer_id)

    conflict = await find_conflict(
        db, trainer_id, scheduled_at, duration_minutes, exclude_booking_id
    )
    if conflict is not None:
        logger.warning(
            "booking_conflict",
            trainer_id=trainer_id,
            scheduled_at=scheduled_at.isoformat(),
            duration_minutes=duration_minutes,
            conflicting_booking_id=conflict.id,
        )
        record_booking_attempt("conflict")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_DETAIL)
