"""
Pre-reservation gate: studio booking model and opening hours.

Consulted before any write. Opening hours are stored per studio as

    {"1": {"enabled": true, "slots": [{"start": "09:00", "end": "17:00"}]}, ...}

keyed by weekday with "0" = Sunday. A missing or empty config means the
studio never restricts times. Times are compared in the studio's local
timezone; a slot ending at "24:00" runs to local midnight.
"""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import HTTPException, status

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_booking_attempt
from studio_booking.models.studio import BookingModel, Studio

logger = get_logger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _parse_hhmm(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def check_opening_hours(
    opening_hours: Optional[dict],
    scheduled_at: datetime,
    duration_minutes: int,
    tz: str = "UTC",
) -> tuple[bool, Optional[str]]:
    """
    Return (allowed, reason). The whole interval [start, start + duration)
    must fit inside one slot of the day the booking starts on.
    """
    if not opening_hours:
        return True, None

    local_start = scheduled_at.astimezone(ZoneInfo(tz))
    day_index = local_start.isoweekday() % 7
    day_name = DAY_NAMES[day_index]
    day_config = opening_hours.get(str(day_index))

    if not day_config or not day_config.get("enabled") or not day_config.get("slots"):
        return False, f"The studio is closed on {day_name}"

    day_start = local_start.replace(hour=0, minute=0, second=0, microsecond=0)
    local_end = local_start + timedelta(minutes=duration_minutes)

    for slot in day_config["slots"]:
        # "24:00" lands on the next local midnight
        slot_start = day_start + timedelta(minutes=_parse_hhmm(slot["start"]))
        slot_end = day_start + timedelta(minutes=_parse_hhmm(slot["end"]))
        if slot_start <= local_start and local_end <= slot_end:
            return True, None

    hours = ", ".join(f"{slot['start']}-{slot['end']}" for slot in day_config["slots"])
    return False, f"The selected time is outside studio operating hours ({day_name} {hours})"


def ensure_booking_allowed(
    studio: Studio,
    scheduled_at: datetime,
    duration_minutes: int,
    public: bool = False,
) -> None:
    """Raise 409 when the studio would not accept this reservation."""
    if public and studio.booking_model == BookingModel.TRAINER_LED:
        logger.info("booking_rejected", studio_id=studio.id, reason="trainer_led")
        record_booking_attempt("rejected")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This studio only accepts bookings made by its trainers",
        )

    allowed, reason = check_opening_hours(
        studio.opening_hours, scheduled_at, duration_minutes, studio.timezone or "UTC"
    )
    if not allowed:
        logger.info(
            "booking_rejected",
            studio_id=studio.id,
            scheduled_at=scheduled_at.isoformat(),
            reason="outside_opening_hours",
        )
        record_booking_attempt("rejected")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=reason)

