"""
Redis connection and caching for availability windows.

CACHING STRATEGY
================

What we cache:
  - Computed availability windows per trainer and date range
  - Key pattern: "availability:{trainer_id}:{start}:{end}"

Invalidation:
  - Every booking write for a trainer deletes "availability:{trainer_id}:*"
  - TTL-based expiry as safety net (AVAILABILITY_CACHE_TTL)

The cache is advisory. Reservations never read it: the conflict detector and
the exclusion constraint always go to the database. When Redis is disabled or
unreachable every helper here degrades to a no-op.
"""

import json
from typing import Optional

import redis.asyncio as redis
from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_availability_key(trainer_id: int, start: str, end: str) -> str:
    return f"availability:{trainer_id}:{start}:{end}"


async def get_cached_availability(trainer_id: int, start: str, end: str) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(trainer_id, start, end)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_availability(trainer_id: int, start: str, end: str, windows: list) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(trainer_id, start, end)
    try:
        await client.setex(key, settings.AVAILABILITY_CACHE_TTL, json.dumps(windows, default=str))
        logger.debug("cache_set", key=key, ttl=settings.AVAILABILITY_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability_cache(trainer_id: int) -> None:
    """Drop every cached window set for one trainer (SCAN on the key prefix)."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"availability:{trainer_id}:*", count=100):
            await client.delete(key)
            deleted += 1
        logger.debug("cache_invalidated", trainer_id=trainer_id, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", trainer_id=trainer_id, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
