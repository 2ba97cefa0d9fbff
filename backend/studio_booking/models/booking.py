"""
Booking model: a reservation of a trainer's time.

Key design decisions:
- `ends_at` is stored next to `scheduled_at` so the database can enforce
  non-overlap with an exclusion constraint (PostgreSQL, btree_gist). Range
  constructors over `timestamptz + interval` are not immutable, a stored end is.
- `hold_expiry` is set exactly while the booking is a soft-hold (CHECK).
- Status changes are soft: cancelled rows are retained; hard deletes are an
  administrative operation.
"""

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)

from studio_booking.db.base import Base, TimestampMixin, UTCDateTime


class BookingStatus:
    SOFT_HOLD = "soft-hold"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (SOFT_HOLD, CONFIRMED, CHECKED_IN, COMPLETED, CANCELLED)
    # Statuses that occupy the trainer's calendar
    ACTIVE = (SOFT_HOLD, CONFIRMED, CHECKED_IN)
    COMPLETABLE = (CONFIRMED, CHECKED_IN)


NO_OVERLAP_CONSTRAINT = "ex_bookings_trainer_no_overlap"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)

    scheduled_at = Column(UTCDateTime(), nullable=False)
    ends_at = Column(UTCDateTime(), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED)
    hold_expiry = Column(UTCDateTime(), nullable=True)

    session_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_booking_duration_positive"),
        CheckConstraint("ends_at > scheduled_at", name="check_booking_ends_after_start"),
        CheckConstraint(
            "status IN ('soft-hold', 'confirmed', 'checked-in', 'completed', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "(status = 'soft-hold' AND hold_expiry IS NOT NULL) "
            "OR (status <> 'soft-hold' AND hold_expiry IS NULL)",
            name="check_booking_hold_expiry",
        ),
        # Conflict detection and calendar reads: trainer + start time
        Index("ix_bookings_trainer_scheduled", "trainer_id", "scheduled_at"),
        # Expiry sweep scans only live holds
        Index("ix_bookings_status_hold_expiry", "status", "hold_expiry"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, trainer={self.trainer_id}, "
            f"at={self.scheduled_at}, status={self.status})>"
        )


# Authoritative no-overlap guard. SQLite (tests) has no exclusion constraints,
# so the DDL only runs on PostgreSQL; migrations create the same constraint.
event.listen(
    Booking.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (trainer_id WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
        "WHERE (status IN ('soft-hold', 'confirmed', 'checked-in'))"
    ).execute_if(dialect="postgresql"),
)
