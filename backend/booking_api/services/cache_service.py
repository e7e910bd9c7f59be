"""
Redis caching service for booking statistics.

CACHING STRATEGY
================

What we cache:
  - The aggregate booking statistics projection (admin dashboard reads)
  - Cache key pattern: "bookings:stats:{event_id|all}"

Why:
  - Stats run several COUNT/SUM queries over the whole bookings table
  - Admin dashboards poll them far more often than they change meaningfully

Invalidation strategy:
  - Every committed booking mutation (create, cancel, status change, event
    cancellation) deletes all "bookings:stats:*" keys
  - TTL-based expiry as safety net

Why NOT cache events or bookings themselves:
  - The booking workflow must validate against the locked row, never a cached copy
  - Per-record cache consistency isn't worth the complexity here

Redis is optional. When disabled or unreachable every call degrades to a
cache miss / no-op and the database answers.
"""

import json
from typing import Optional

import redis.asyncio as redis
from booking_api.core.config import get_settings
from booking_api.core.logging import get_logger
from booking_api.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

STATS_KEY_PREFIX = "bookings:stats:"

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


def _make_stats_key(event_id: Optional[str]) -> str:
    return f"{STATS_KEY_PREFIX}{event_id or 'all'}"


async def get_cached_stats(event_id: Optional[str]) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_stats_key(event_id)
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


async def set_cached_stats(event_id: Optional[str], data: dict) -> None:
    """Cache a stats payload with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_stats_key(event_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_stats_cache() -> None:
    """
    Invalidate all cached booking statistics.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{STATS_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


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
