"""
Typed events handed to the notification sink.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class BookingConfirmed(BaseModel):
    type: Literal["booking_confirmed"] = "booking_confirmed"
    booking_id: int
    client_email: str
    client_name: str
    trainer_name: str
    service_name: str
    scheduled_at: datetime
    duration_minutes: int


class ReminderDue(BaseModel):
    type: Literal["reminder_due"] = "reminder_due"
    booking_id: int
    client_email: str
    client_name: str
    trainer_name: str
    service_name: str
    scheduled_at: datetime
    hours_before: int
    send_at: datetime


class LowCredits(BaseModel):
    type: Literal["low_credits"] = "low_credits"
    client_id: int
    remaining: int


NotificationEvent = BookingConfirmed | ReminderDue | LowCredits
