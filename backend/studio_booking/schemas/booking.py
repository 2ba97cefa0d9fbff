"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    trainer_id: Optional[int] = None  # defaults to the authenticated trainer
    client_id: Optional[int] = None
    service_id: Optional[int] = None
    scheduled_at: datetime
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    status: Literal["confirmed", "soft-hold"] = "confirmed"
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingUpdate(BaseModel):
    client_id: Optional[int] = None
    service_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    status: Optional[str] = None
    session_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingCompleteRequest(BaseModel):
    session_id: Optional[int] = None


class BookingResponse(BaseModel):
    id: int
    studio_id: int
    trainer_id: int
    client_id: Optional[int]
    service_id: Optional[int]
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: str
    hold_expiry: Optional[datetime]
    session_id: Optional[int]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditDeductionResponse(BaseModel):
    success: bool
    reason: Optional[str] = None
    client_package_id: Optional[int] = None
    remaining: Optional[int] = None


class BookingCompleteResponse(BaseModel):
    booking: BookingResponse
    credits: CreditDeductionResponse


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
    credits_refunded: int = 0
