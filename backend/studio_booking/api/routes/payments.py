"""
Payment gateway event endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.db.session import get_db
from studio_booking.schemas.payment import PaymentEvent, PaymentEventResult
from studio_booking.services.payment_event_service import handle_payment_event

settings = get_settings()
router = APIRouter(prefix="/payments", tags=["Payments"])


async def verify_payment_source(
    token: Optional[str] = Header(default=None, alias="X-Payment-Events-Token"),
) -> None:
    if settings.PAYMENT_EVENTS_TOKEN and token != settings.PAYMENT_EVENTS_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid payment events token",
        )


@router.post(
    "/events",
    response_model=PaymentEventResult,
    dependencies=[Depends(verify_payment_source)],
)
async def payment_event(
    event: PaymentEvent,
    db: AsyncSession = Depends(get_db),
):
    """Apply a verified gateway event (checkout.completed, payment.failed, charge.refunded)."""
    return await handle_payment_event(db, event)
