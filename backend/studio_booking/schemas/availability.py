"""
Schemas for availability windows.
"""

from datetime import date, datetime

from pydantic import BaseModel


class TimeWindow(BaseModel):
    start: datetime
    end: datetime


class AvailabilityResponse(BaseModel):
    trainer_id: int
    start_date: date
    end_date: date
    windows: list[TimeWindow]
    cached: bool = False
