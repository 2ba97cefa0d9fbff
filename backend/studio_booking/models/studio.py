"""
Studio (tenant) model with the booking configuration the gate reads.

A solo trainer is a studio of one.
"""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, Integer, String

from studio_booking.db.base import Base, TimestampMixin


class BookingModel:
    INSTANT = "instant"
    SOFT_HOLD = "soft-hold"
    CLIENT_SELF_BOOK = "client-self-book"
    TRAINER_LED = "trainer-led"


class Studio(Base, TimestampMixin):
    __tablename__ = "studios"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    booking_model = Column(String(30), nullable=False, default=BookingModel.CLIENT_SELF_BOOK)

    # soft_hold_minutes=None means "use the caller's default length"
    soft_holds_enabled = Column(Boolean, nullable=False, default=True)
    soft_hold_minutes = Column(Integer, nullable=True)

    # {"0": {"enabled": true, "slots": [{"start": "09:00", "end": "17:00"}]}, ...}
    # keys are weekdays with "0" = Sunday; empty means always open
    opening_hours = Column(JSON, nullable=False, default=dict)
    timezone = Column(String(64), nullable=False, default="UTC")

    __table_args__ = (
        CheckConstraint(
            "soft_hold_minutes IS NULL OR soft_hold_minutes > 0",
            name="check_studio_soft_hold_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<Studio(id={self.id}, name={self.name}, model={self.booking_model})>"
