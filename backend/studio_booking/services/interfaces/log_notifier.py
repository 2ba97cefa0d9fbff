"""
Log-only notifier. Used in development or when no queue is configured.
"""

from studio_booking.core.logging import get_logger
from studio_booking.schemas.notification import NotificationEvent
from studio_booking.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class LogNotifier(Notifier):
    async def send(self, event: NotificationEvent) -> str:
        logger.info("notification_logged", **event.model_dump(mode="json"))
        return "logged"
