"""
Inbound payment gateway events.

The gateway integration verifies signatures and handles delivery retries
before an event reaches this module; here an event only moves a booking
through the lifecycle:

  checkout.completed                -> soft-hold becomes confirmed
  payment.failed / charge.refunded  -> booking cancelled, credits refunded

Replayed events are no-ops, so at-least-once delivery is safe.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.logging import get_logger
from studio_booking.models.booking import BookingStatus
from studio_booking.schemas.payment import PaymentEvent, PaymentEventResult
from studio_booking.services.booking_service import cancel_booking, confirm_hold, get_booking

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.completed"
PAYMENT_FAILED = "payment.failed"
CHARGE_REFUNDED = "charge.refunded"


def _result(event: PaymentEvent, action: str, booking_status: str) -> PaymentEventResult:
    return PaymentEventResult(
        booking_id=event.booking_id,
        event_type=event.type,
        action=action,
        status=booking_status,
    )


async def handle_payment_event(db: AsyncSession, event: PaymentEvent) -> PaymentEventResult:
    booking = await get_booking(db, event.booking_id)

    if event.type == CHECKOUT_COMPLETED:
        if booking.status == BookingStatus.SOFT_HOLD:
            booking = await confirm_hold(db, booking)
            action = "confirmed"
        elif booking.status in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN):
            action = "noop"
        else:
            # Hold already expired or cancelled: refunding the late payment
            # is the payment system's job
            logger.warning(
                "payment_event_ignored",
                booking_id=booking.id,
                event_type=event.type,
                status=booking.status,
                payment_reference=event.payment_reference,
            )
            return _result(event, "ignored", booking.status)

    elif event.type in (PAYMENT_FAILED, CHARGE_REFUNDED):
        if booking.status == BookingStatus.CANCELLED:
            action = "noop"
        else:
            booking, _ = await cancel_booking(db, booking.id)
            action = "cancelled"

    else:
        logger.info("payment_event_ignored", booking_id=booking.id, event_type=event.type)
        return _result(event, "ignored", booking.status)

    logger.info(
        "payment_event_processed",
        booking_id=booking.id,
        event_type=event.type,
        action=action,
        status=booking.status,
        payment_reference=event.payment_reference,
    )
    return _result(event, action, booking.status)
