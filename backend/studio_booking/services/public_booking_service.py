"""
Unauthenticated bookings from a studio's public booking page.

Free sessions (no price, or an intro session) are confirmed straight away.
Paid sessions start as a soft-hold that checkout either confirms
(payment_event_service) or lets expire.
"""

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.models.booking import BookingStatus
from studio_booking.models.service import Service
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.public import PublicBookingCreate, PublicBookingResponse
from studio_booking.services.booking_gate import ensure_booking_allowed
from studio_booking.services.booking_service import (
    as_utc,
    get_studio,
    hold_minutes_for,
    reserve,
)
from studio_booking.services.identity_service import resolve_public_client
from studio_booking.services.notification_service import notify_booking_confirmed

logger = get_logger(__name__)
settings = get_settings()


async def create_public_booking(db: AsyncSession, data: PublicBookingCreate) -> PublicBookingResponse:
    trainer = await db.get(Trainer, data.trainer_id)
    if not trainer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trainer not found",
        )

    service = await db.get(Service, data.service_id)
    if (
        not service
        or service.studio_id != trainer.studio_id
        or not service.is_public
        or not service.is_active
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found",
        )

    studio = await get_studio(db, trainer.studio_id)
    scheduled_at = as_utc(data.scheduled_at)
    ensure_booking_allowed(studio, scheduled_at, service.duration_minutes, public=True)

    client, has_existing_account = await resolve_public_client(
        db,
        studio.id,
        data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        invited_by=trainer.id,
    )

    initial_status = BookingStatus.CONFIRMED
    hold_minutes = None
    if not service.is_free:
        hold_minutes = hold_minutes_for(studio, settings.PUBLIC_HOLD_MINUTES)
        if hold_minutes is not None:
            initial_status = BookingStatus.SOFT_HOLD

    booking = await reserve(
        db,
        studio=studio,
        trainer_id=trainer.id,
        scheduled_at=scheduled_at,
        duration_minutes=service.duration_minutes,
        client_id=client.id,
        service_id=service.id,
        initial_status=initial_status,
        hold_minutes=hold_minutes,
        notes=f"Public booking by {client.display_name}",
    )

    if booking.status == BookingStatus.CONFIRMED:
        await notify_booking_confirmed(db, booking)

    logger.info(
        "public_booking_created",
        booking_id=booking.id,
        client_id=client.id,
        status=booking.status,
        requires_payment=not service.is_free,
    )
    return PublicBookingResponse(
        booking_id=booking.id,
        status=booking.status,
        requires_payment=not service.is_free,
        price_cents=service.price_cents,
        hold_expiry=booking.hold_expiry,
        has_existing_account=has_existing_account,
        client_id=client.id,
    )
