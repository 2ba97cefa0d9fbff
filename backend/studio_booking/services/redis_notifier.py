"""
Redis-backed notification queue.

Events are serialised to JSON and RPUSHed onto NOTIFICATION_QUEUE_KEY; the
mail worker BLPOPs from the other end. When Redis is disabled or unreachable
the event is logged instead so local development still shows what would
have been sent.
"""

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.schemas.notification import NotificationEvent
from studio_booking.services.cache_service import get_redis
from studio_booking.services.interfaces.log_notifier import LogNotifier
from studio_booking.services.interfaces.notifier import Notifier

logger = get_logger(__name__)
settings = get_settings()


class RedisNotifier(Notifier):
    def __init__(self, queue_key: str = settings.NOTIFICATION_QUEUE_KEY):
        self.queue_key = queue_key
        self.fallback = LogNotifier()

    async def send(self, event: NotificationEvent) -> str:
        client = await get_redis()
        if client is None:
            return await self.fallback.send(event)

        await client.rpush(self.queue_key, event.model_dump_json())
        logger.info("notification_queued", event_type=event.type, queue=self.queue_key)
        return "queued"
