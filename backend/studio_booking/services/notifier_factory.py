"""
Notifier factory.
Configures which notification sink to use.
"""

from typing import Optional

from studio_booking.core.config import get_settings
from studio_booking.services.interfaces.log_notifier import LogNotifier
from studio_booking.services.interfaces.notifier import Notifier
from studio_booking.services.redis_notifier import RedisNotifier

settings = get_settings()


def build_notifier() -> Notifier:
    """
    Build the configured notifier.

    NOTIFICATION_BACKEND:
    - "redis": queue for the mail worker (default)
    - "log": log only
    """
    if settings.NOTIFICATION_BACKEND == "redis":
        return RedisNotifier()
    return LogNotifier()


# Singleton instance
_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier
