"""
Trainer model. Bookings are made against a trainer's calendar.
"""

from sqlalchemy import Column, ForeignKey, Integer, String

from studio_booking.db.base import Base, TimestampMixin


class Trainer(Base, TimestampMixin):
    __tablename__ = "trainers"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Your Trainer"

    def __repr__(self) -> str:
        return f"<Trainer(id={self.id}, studio={self.studio_id})>"
