"""
Trainer availability rules: recurring weekly windows and one-off overrides,
either opening time up ("available") or taking it away ("blocked").
"""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, String

from studio_booking.db.base import Base, TimestampMixin


class AvailabilityBlock(Base, TimestampMixin):
    __tablename__ = "availability_blocks"

    id = Column(Integer, primary_key=True, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    block_type = Column(String(20), nullable=False)  # available, blocked
    recurrence = Column(String(20), nullable=False, default="weekly")  # weekly, once

    # Weekly recurring, 0 = Sunday
    day_of_week = Column(Integer, nullable=True)
    # Null hours on a blocked rule mean the whole day
    start_hour = Column(Integer, nullable=True)
    start_minute = Column(Integer, nullable=False, default=0)
    end_hour = Column(Integer, nullable=True)
    end_minute = Column(Integer, nullable=False, default=0)

    # One-off rules; end_date makes a multi-day block
    specific_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    reason = Column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint("block_type IN ('available', 'blocked')", name="check_block_type"),
        CheckConstraint("recurrence IN ('weekly', 'once')", name="check_block_recurrence"),
        CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="check_block_day_of_week",
        ),
        Index("ix_availability_blocks_trainer", "trainer_id"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityBlock(id={self.id}, trainer={self.trainer_id}, type={self.block_type})>"
