"""
Service (session type) model. Read-only input to the reservation core:
it supplies duration, price and the credits a completed session consumes.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String

from studio_booking.db.base import Base, TimestampMixin


class Service(Base, TimestampMixin):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    credits_required = Column(Integer, nullable=False, default=1)
    price_cents = Column(Integer, nullable=True)  # null = free or paid with credits
    is_intro_session = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
        CheckConstraint("credits_required > 0", name="check_service_credits_positive"),
    )

    @property
    def is_free(self) -> bool:
        return not self.price_cents or self.is_intro_session

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, duration={self.duration_minutes})>"
