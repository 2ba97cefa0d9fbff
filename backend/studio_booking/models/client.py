"""
Client model, scoped to one studio.

The same person may be a client of several independent studios. Each studio
gets its own row; rows belonging to a person with a real account share
`account_id`, guests have none.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from studio_booking.db.base import Base, TimestampMixin


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    account_id = Column(String(64), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    is_guest = Column(Boolean, nullable=False, default=False)
    source = Column(String(30), nullable=False, default="manual")  # manual, public_booking
    invited_by = Column(Integer, ForeignKey("trainers.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("studio_id", "email", name="uq_client_studio_email"),
    )

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Client"

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, studio={self.studio_id}, guest={self.is_guest})>"
