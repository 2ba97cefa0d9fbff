"""
Fire-and-forget notification emission.

Booking operations never fail because a notification could not be queued:
every error is logged and swallowed here.
"""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_notification
from studio_booking.db.base import utcnow
from studio_booking.models.booking import Booking
from studio_booking.models.client import Client
from studio_booking.models.service import Service
from studio_booking.models.trainer import Trainer
from studio_booking.schemas.notification import BookingConfirmed, NotificationEvent, ReminderDue
from studio_booking.services.notifier_factory import get_notifier

logger = get_logger(__name__)
settings = get_settings()

DEFAULT_SERVICE_NAME = "Training Session"


async def emit(event: NotificationEvent) -> None:
    try:
        result = await get_notifier().send(event)
        record_notification(result)
    except Exception as e:
        logger.error("notification_failed", event_type=event.type, error=str(e))
        record_notification("failed")


async def notify_booking_confirmed(db: AsyncSession, booking: Booking) -> None:
    """
    Emit BookingConfirmed for a booking with a client, then one ReminderDue
    per REMINDER_HOURS_BEFORE offset that is still in the future.
    """
    try:
        if booking.client_id is None:
            return
        client = await db.get(Client, booking.client_id)
        if client is None or not client.email:
            return

        trainer = await db.get(Trainer, booking.trainer_id)
        service = await db.get(Service, booking.service_id) if booking.service_id else None

        trainer_name = trainer.display_name if trainer else "Your Trainer"
        service_name = service.name if service else DEFAULT_SERVICE_NAME

        await emit(
            BookingConfirmed(
                booking_id=booking.id,
                client_email=client.email,
                client_name=client.display_name,
                trainer_name=trainer_name,
                service_name=service_name,
                scheduled_at=booking.scheduled_at,
                duration_minutes=booking.duration_minutes,
            )
        )

        now = utcnow()
        for hours in settings.REMINDER_HOURS_BEFORE:
            send_at = booking.scheduled_at - timedelta(hours=hours)
            if send_at <= now:
                continue
            await emit(
                ReminderDue(
                    booking_id=booking.id,
                    client_email=client.email,
                    client_name=client.display_name,
                    trainer_name=trainer_name,
                    service_name=service_name,
                    scheduled_at=booking.scheduled_at,
                    hours_before=hours,
                    send_at=send_at,
                )
            )
    except Exception as e:
        logger.error("notification_failed", booking_id=booking.id, error=str(e))
        record_notification("failed")
