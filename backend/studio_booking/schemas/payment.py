"""
Inbound payment gateway events. Signature verification happens before
these reach the service.
"""

from typing import Optional

from pydantic import BaseModel, Field


class PaymentEvent(BaseModel):
    type: str = Field(..., examples=["checkout.completed", "payment.failed", "charge.refunded"])
    booking_id: int
    payment_reference: Optional[str] = None


class PaymentEventResult(BaseModel):
    booking_id: int
    event_type: str
    action: str  # confirmed, cancelled, noop, ignored
    status: str
