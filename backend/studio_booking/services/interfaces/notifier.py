"""
Notification sink interface.
The reservation core produces typed events; delivery (email, push) happens
elsewhere, downstream of whatever the implementation hands the event to.
"""

from abc import ABC, abstractmethod

from studio_booking.schemas.notification import NotificationEvent


class Notifier(ABC):
    """
    Interface for notification sinks.

    Implementations:
    - RedisNotifier: push onto a Redis list drained by the mail worker
    - LogNotifier: structured log line only (local development)

    Implementations may raise; callers go through notification_service.emit,
    which never lets a failure reach the booking operation.
    """

    @abstractmethod
    async def send(self, event: NotificationEvent) -> str:
        """
        Hand one event to the sink.

        Returns:
            "queued" or "logged", for metrics
        """
        pass
