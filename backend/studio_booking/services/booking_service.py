"""
Reservation lifecycle for trainer bookings.

STATE MACHINE
=============

    soft-hold ──confirm──> confirmed ──check-in──> checked-in
        │                     │                        │
        │                     └───────complete─────────┤
        │                                              v
        └──expire/cancel──> cancelled <──cancel── completed

  - soft-hold: time-boxed reservation pending payment or confirmation.
    hold_expiry is set exactly while in this state. Expired holds are swept
    to cancelled lazily (see conflict_service.expire_stale_holds).
  - complete() is the only transition that touches the credit ledger.
  - cancel is a soft delete (row kept, credits refunded); hard delete is an
    administrative cleanup that removes the row.

CONCURRENCY
===========

  Calendar: conflict_service check + exclusion constraint on PostgreSQL. An
  IntegrityError from the constraint at flush time becomes the same 409.

  Completion: the booking is claimed with a conditional UPDATE

    UPDATE bookings SET status = 'completed'
    WHERE id = :id AND status IN ('confirmed', 'checked-in')

  Only the request that flips the row goes on to deduct credits; a duplicate
  or concurrent completion sees rowcount 0 and gets a 400. The UNIQUE
  credit_usage.booking_id is the backstop.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import booking_latency, record_booking_attempt
from studio_booking.db.base import utcnow
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.client import Client
from studio_booking.models.package import CreditUsage
from studio_booking.models.service import Service
from studio_booking.models.studio import Studio
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.booking import BookingCreate, BookingUpdate, CreditDeductionResponse
from studio_booking.services import credit_service
from studio_booking.services.booking_gate import ensure_booking_allowed
from studio_booking.services.cache_service import invalidate_availability_cache
from studio_booking.services.conflict_service import (
    CONFLICT_DETAIL,
    booking_end,
    ensure_no_conflict,
    expire_stale_holds,
    is_overlap_violation,
)
from studio_booking.services.notification_service import notify_booking_confirmed

logger = get_logger(__name__)
settings = get_settings()


def as_utc(value: datetime) -> datetime:
    """Naive datetimes from clients are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hold_minutes_for(studio: Studio, default_minutes: int) -> Optional[int]:
    """Soft-hold length for this studio, or None when holds are disabled (auto-confirm)."""
    if not studio.soft_holds_enabled:
        return None
    return studio.soft_hold_minutes or default_minutes


async def get_studio(db: AsyncSession, studio_id: int) -> Studio:
    studio = await db.get(Studio, studio_id)
    if not studio:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Studio {studio_id} not found",
        )
    return studio


async def _get_trainer(db: AsyncSession, trainer_id: int, studio_id: int) -> Trainer:
    trainer = await db.get(Trainer, trainer_id)
    if not trainer or trainer.studio_id != studio_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Trainer {trainer_id} not found",
        )
    return trainer


async def _get_client(db: AsyncSession, client_id: int, studio_id: int) -> Client:
    client = await db.get(Client, client_id)
    if not client or client.studio_id != studio_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {client_id} not found",
        )
    return client


async def _get_service(db: AsyncSession, service_id: int, studio_id: int) -> Service:
    service = await db.get(Service, service_id)
    if not service or service.studio_id != studio_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Service {service_id} not found",
        )
    return service


async def _flush_booking(db: AsyncSession, booking: Booking) -> None:
    """Flush, turning a no-overlap constraint violation into a 409."""
    try:
        await db.flush()
    except SQLAlchemyError as e:
        if isinstance(e, IntegrityError) and is_overlap_violation(e):
            logger.warning(
                "booking_conflict",
                trainer_id=booking.trainer_id,
                scheduled_at=booking.scheduled_at.isoformat(),
                source="exclusion_constraint",
            )
            record_booking_attempt("conflict")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_DETAIL) from e
        logger.error("booking_write_failed", trainer_id=booking.trainer_id, error=str(e))
        record_booking_attempt("error")
        raise
    await db.refresh(booking)


async def reserve(
    db: AsyncSession,
    *,
    studio: Studio,
    trainer_id: int,
    scheduled_at: datetime,
    duration_minutes: Optional[int],
    client_id: Optional[int] = None,
    service_id: Optional[int] = None,
    initial_status: str = BookingStatus.CONFIRMED,
    hold_minutes: Optional[int] = None,
    notes: Optional[str] = None,
) -> Booking:
    """
    Persist a conflict-free booking in soft-hold or confirmed state.
    Callers run the gate and pick the initial state first.
    """
    if not duration_minutes or duration_minutes <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="duration_minutes must be a positive integer",
        )
    if initial_status not in (BookingStatus.CONFIRMED, BookingStatus.SOFT_HOLD):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Bookings cannot be created as {initial_status}",
        )
    if initial_status == BookingStatus.SOFT_HOLD and not hold_minutes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A soft-hold needs a hold length",
        )

    start_time = time.perf_counter()
    scheduled_at = as_utc(scheduled_at)

    await ensure_no_conflict(db, trainer_id, scheduled_at, duration_minutes)

    hold_expiry = None
    if initial_status == BookingStatus.SOFT_HOLD:
        hold_expiry = utcnow() + timedelta(minutes=hold_minutes)

    booking = Booking(
        studio_id=studio.id,
        trainer_id=trainer_id,
        client_id=client_id,
        service_id=service_id,
        scheduled_at=scheduled_at,
        ends_at=booking_end(scheduled_at, duration_minutes),
        duration_minutes=duration_minutes,
        status=initial_status,
        hold_expiry=hold_expiry,
        notes=notes,
    )
    db.add(booking)
    await _flush_booking(db, booking)
    await invalidate_availability_cache(trainer_id)

    booking_latency.observe(time.perf_counter() - start_time)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        studio_id=studio.id,
        trainer_id=trainer_id,
        client_id=client_id,
        scheduled_at=scheduled_at.isoformat(),
        duration_minutes=duration_minutes,
        status=booking.status,
        hold_expiry=hold_expiry.isoformat() if hold_expiry else None,
    )
    return booking


async def create_booking(db: AsyncSession, trainer: Trainer, data: BookingCreate) -> Booking:
    """Trainer-initiated booking inside the trainer's own studio."""
    studio = await get_studio(db, trainer.studio_id)

    trainer_id = trainer.id
    if data.trainer_id is not None and data.trainer_id != trainer.id:
        trainer_id = (await _get_trainer(db, data.trainer_id, studio.id)).id

    if data.client_id is not None:
        await _get_client(db, data.client_id, studio.id)

    service = None
    if data.service_id is not None:
        service = await _get_service(db, data.service_id, studio.id)

    duration = data.duration_minutes or (service.duration_minutes if service else None)
    if not duration:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="duration_minutes is required when no service is given",
        )

    scheduled_at = as_utc(data.scheduled_at)
    ensure_booking_allowed(studio, scheduled_at, duration, public=False)

    initial_status = data.status
    hold_minutes = None
    if initial_status == BookingStatus.SOFT_HOLD:
        hold_minutes = hold_minutes_for(studio, settings.TRAINER_HOLD_MINUTES)
        if hold_minutes is None:
            initial_status = BookingStatus.CONFIRMED

    booking = await reserve(
        db,
        studio=studio,
        trainer_id=trainer_id,
        scheduled_at=scheduled_at,
        duration_minutes=duration,
        client_id=data.client_id,
        service_id=data.service_id,
        initial_status=initial_status,
        hold_minutes=hold_minutes,
        notes=data.notes,
    )

    if booking.status == BookingStatus.CONFIRMED:
        await notify_booking_confirmed(db, booking)
    return booking


async def list_bookings(
    db: AsyncSession,
    studio_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status_filter: Optional[str] = None,
    client_id: Optional[int] = None,
) -> list[Booking]:
    """List a studio's bookings. Expired holds are swept first."""
    await expire_stale_holds(db, studio_id=studio_id)

    query = select(Booking).where(Booking.studio_id == studio_id)
    if start_date is not None:
        query = query.where(Booking.scheduled_at >= as_utc(start_date))
    if end_date is not None:
        query = query.where(Booking.scheduled_at <= as_utc(end_date))
    if status_filter:
        query = query.where(Booking.status == status_filter)
    if client_id is not None:
        query = query.where(Booking.client_id == client_id)

    result = await db.execute(query.order_by(Booking.scheduled_at.asc()))
    return list(result.scalars().all())


async def get_booking(db: AsyncSession, booking_id: int, studio_id: Optional[int] = None) -> Booking:
    """Fetch a booking, scoped to a studio when one is given."""
    await expire_stale_holds(db, booking_id=booking_id)

    booking = await db.get(Booking, booking_id, populate_existing=True)
    if not booking or (studio_id is not None and booking.studio_id != studio_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    return booking


async def confirm_hold(db: AsyncSession, booking: Booking) -> Booking:
    """soft-hold -> confirmed. A booking that is already confirmed is returned unchanged."""
    if booking.status == BookingStatus.CONFIRMED:
        return booking
    if booking.status != BookingStatus.SOFT_HOLD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot confirm a booking that is {booking.status}",
        )

    booking.status = BookingStatus.CONFIRMED
    booking.hold_expiry = None
    await db.flush()
    await db.refresh(booking)

    logger.info("booking_confirmed", booking_id=booking.id, trainer_id=booking.trainer_id)
    await notify_booking_confirmed(db, booking)
    return booking


async def update_booking(
    db: AsyncSession,
    booking_id: int,
    studio_id: int,
    data: BookingUpdate,
) -> Booking:
    """
    Reschedule, reassign or annotate a booking. The only status change
    accepted here is soft-hold -> confirmed; the other transitions have
    their own operations.
    """
    booking = await get_booking(db, booking_id, studio_id)
    changes = data.model_dump(exclude_unset=True)

    new_status = changes.pop("status", None)
    if new_status is not None and new_status != booking.status:
        if new_status != BookingStatus.CONFIRMED or booking.status != BookingStatus.SOFT_HOLD:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot change status from {booking.status} to {new_status} here",
            )

    if "client_id" in changes and changes["client_id"] is not None:
        await _get_client(db, changes["client_id"], studio_id)
    if "service_id" in changes and changes["service_id"] is not None:
        await _get_service(db, changes["service_id"], studio_id)

    scheduled_at = as_utc(changes.pop("scheduled_at", None) or booking.scheduled_at)
    duration = changes.pop("duration_minutes", None) or booking.duration_minutes
    rescheduled = scheduled_at != booking.scheduled_at or duration != booking.duration_minutes

    if rescheduled:
        if booking.status not in BookingStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot reschedule a booking that is {booking.status}",
            )
        studio = await get_studio(db, studio_id)
        ensure_booking_allowed(studio, scheduled_at, duration, public=False)
        await ensure_no_conflict(
            db, booking.trainer_id, scheduled_at, duration, exclude_booking_id=booking.id
        )
        booking.scheduled_at = scheduled_at
        booking.duration_minutes = duration
        booking.ends_at = booking_end(scheduled_at, duration)

    for field, value in changes.items():
        setattr(booking, field, value)

    await _flush_booking(db, booking)
    await invalidate_availability_cache(booking.trainer_id)

    logger.info(
        "booking_updated",
        booking_id=booking.id,
        fields=sorted(data.model_dump(exclude_unset=True)),
        rescheduled=rescheduled,
    )

    if new_status == BookingStatus.CONFIRMED and booking.status == BookingStatus.SOFT_HOLD:
        booking = await confirm_hold(db, booking)
    return booking


async def check_in(db: AsyncSession, booking_id: int, studio_id: int) -> Booking:
    """confirmed (or a still-valid soft-hold) -> checked-in."""
    booking = await get_booking(db, booking_id, studio_id)

    if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.SOFT_HOLD):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot check in a booking that is {booking.status}",
        )

    booking.status = BookingStatus.CHECKED_IN
    booking.hold_expiry = None
    await db.flush()
    await db.refresh(booking)

    logger.info("booking_checked_in", booking_id=booking.id, trainer_id=booking.trainer_id)
    return booking


async def complete(
    db: AsyncSession,
    booking_id: int,
    studio_id: int,
    session_id: Optional[int] = None,
) -> tuple[Booking, CreditDeductionResponse]:
    """
    Complete a confirmed or checked-in booking and charge its credits once.
    A billing shortfall is logged and returned, never raised.
    """
    booking = await get_booking(db, booking_id, studio_id)

    values = {"status": BookingStatus.COMPLETED}
    if session_id is not None:
        values["session_id"] = session_id

    claim = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.status.in_(BookingStatus.COMPLETABLE),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if claim.rowcount == 0:
        await db.refresh(booking)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot complete a booking that is {booking.status}",
        )
    await db.refresh(booking)

    if booking.client_id is None:
        credits = CreditDeductionResponse(success=False, reason="no_client")
        logger.warning("credit_deduction_failed", booking_id=booking.id, reason="no_client")
    else:
        credits_required = 1
        if booking.service_id is not None:
            service = await db.get(Service, booking.service_id)
            if service and service.credits_required:
                credits_required = service.credits_required
        credits = await credit_service.deduct(db, booking.client_id, booking.id, credits_required)

    logger.info(
        "booking_completed",
        booking_id=booking.id,
        trainer_id=booking.trainer_id,
        client_id=booking.client_id,
        session_id=booking.session_id,
        credits_deducted=credits.success,
    )
    return booking, credits


async def cancel_booking(db: AsyncSession, booking_id: int, studio_id: Optional[int] = None) -> tuple[Booking, int]:
    """
    Soft delete: mark cancelled, keep the row, refund any deduction.
    Returns the booking and the credits refunded.
    """
    booking = await get_booking(db, booking_id, studio_id)

    if booking.status == BookingStatus.CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Booking is already cancelled",
        )

    previous_status = booking.status
    booking.status = BookingStatus.CANCELLED
    booking.hold_expiry = None
    await db.flush()

    refunded = await credit_service.refund(db, booking.id)
    await db.refresh(booking)
    await invalidate_availability_cache(booking.trainer_id)

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        trainer_id=booking.trainer_id,
        previous_status=previous_status,
        credits_refunded=refunded,
    )
    return booking, refunded


async def delete_booking(db: AsyncSession, booking_id: int, studio_id: int) -> int:
    """
    Administrative hard delete. Reverses any deduction, removes the usage
    rows and the booking itself. Returns the credits refunded.
    """
    booking = await get_booking(db, booking_id, studio_id)
    trainer_id = booking.trainer_id

    refunded = await credit_service.refund(db, booking.id)
    await db.execute(delete(CreditUsage).where(CreditUsage.booking_id == booking.id))
    await db.delete(booking)
    await db.flush()
    await invalidate_availability_cache(trainer_id)

    logger.info(
        "booking_deleted",
        booking_id=booking_id,
        trainer_id=trainer_id,
        credits_refunded=refunded,
    )
    return refunded
