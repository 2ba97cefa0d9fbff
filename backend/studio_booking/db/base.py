"""
Declarative base, timestamp mixin and cross-dialect column types.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, TypeDecorator, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetimes on every backend.

    PostgreSQL keeps the offset natively; SQLite stores naive text, so values
    are normalised to UTC on the way in and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
    updated_at = Column(UTCDateTime(), nullable=False, server_default=func.now(), onupdate=func.now())
