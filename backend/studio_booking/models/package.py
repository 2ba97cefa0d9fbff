"""
Session-credit packages and the credit ledger.

Key design decisions:
- `sessions_remaining` is derived (`sessions_total - sessions_used`), never
  stored, so it cannot drift from the usage count.
- `sessions_used` only moves together with a CreditUsage row; the CHECK keeps
  it inside [0, sessions_total] even under concurrent writers.
- One CreditUsage per booking (UNIQUE): the idempotency key for completion.
  Refunds void the row instead of deleting it so the audit trail survives.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.hybrid import hybrid_property

from studio_booking.db.base import Base, TimestampMixin, UTCDateTime


class PackageStatus:
    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class Package(Base, TimestampMixin):
    """A credit bundle a studio offers for sale."""

    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    session_count = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=True)  # null = credits never expire
    price_cents = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("session_count > 0", name="check_package_session_count_positive"),
    )


class ClientPackage(Base, TimestampMixin):
    """A client's balance from one purchased or granted package."""

    __tablename__ = "client_packages"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    sessions_total = Column(Integer, nullable=False)
    sessions_used = Column(Integer, nullable=False, default=0)
    purchased_at = Column(UTCDateTime(), nullable=True)
    expires_at = Column(UTCDateTime(), nullable=True)
    status = Column(String(20), nullable=False, default=PackageStatus.ACTIVE)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("sessions_total > 0", name="check_client_package_total_positive"),
        CheckConstraint(
            "sessions_used >= 0 AND sessions_used <= sessions_total",
            name="check_client_package_used_in_range",
        ),
        CheckConstraint(
            "status IN ('active', 'expired', 'exhausted')",
            name="check_client_package_status",
        ),
        Index("ix_client_packages_client_status", "client_id", "status"),
    )

    @hybrid_property
    def sessions_remaining(self):
        return self.sessions_total - self.sessions_used

    def __repr__(self) -> str:
        return (
            f"<ClientPackage(id={self.id}, client={self.client_id}, "
            f"used={self.sessions_used}/{self.sessions_total}, status={self.status})>"
        )


class CreditUsage(Base):
    """Immutable audit record of one deduction. Voided, never edited, on refund."""

    __tablename__ = "credit_usage"

    id = Column(Integer, primary_key=True, index=True)
    client_package_id = Column(Integer, ForeignKey("client_packages.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    credits_used = Column(Integer, nullable=False, default=1)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False, default="booking")
    created_at = Column(UTCDateTime(), nullable=False)
    voided_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("credits_used > 0", name="check_credit_usage_positive"),
    )

    def __repr__(self) -> str:
        return f"<CreditUsage(id={self.id}, booking={self.booking_id}, credits={self.credits_used})>"
