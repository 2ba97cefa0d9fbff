"""
Schemas for the unauthenticated public booking page.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class PublicBookingCreate(BaseModel):
    trainer_id: int
    service_id: int
    scheduled_at: datetime
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)


class PublicBookingResponse(BaseModel):
    booking_id: int
    status: str
    requires_payment: bool
    price_cents: Optional[int]
    hold_expiry: Optional[datetime]
    has_existing_account: bool
    client_id: int
