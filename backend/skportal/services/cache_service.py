"""
Redis caching for event capacity snapshots.

CACHING STRATEGY
================

What we cache:
  - The capacity summary of one event (max, current, available slots).
  - Key pattern: "events:capacity:{event_id}"

Why:
  - Event pages poll capacity far more often than registrations happen.

Invalidation strategy:
  - Every registration write (register, status change, reconciliation, event
    update) deletes the event's key after commit.
  - TTL-based expiry as safety net (REDIS_CACHE_TTL).

The registration path itself never reads from this cache: eligibility and
participant bookkeeping always work on the database row.
"""

import json
from typing import Optional

from redis.exceptions import RedisError

from skportal.core.config import get_settings
from skportal.core.logging import get_logger
from skportal.core.metrics import record_cache_operation
from skportal.infrastructure.redis_client import get_redis, mark_redis_unavailable

logger = get_logger(__name__)


def _make_capacity_key(event_id: int) -> str:
    return f"events:capacity:{event_id}"


async def get_cached_capacity(event_id: int) -> Optional[dict]:
    """Retrieve a cached capacity summary."""
    client = await get_redis()
    if not client:
        return None

    key = _make_capacity_key(event_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except RedisError as e:
        await mark_redis_unavailable(e)
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_capacity(event_id: int, data: dict) -> None:
    """Cache a capacity summary with TTL."""
    client = await get_redis()
    if not client:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    key = _make_capacity_key(event_id)
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=ttl)
    except RedisError as e:
        await mark_redis_unavailable(e)
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_capacity(event_id: int) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_capacity_key(event_id)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except RedisError as e:
        await mark_redis_unavailable(e)
        logger.error("cache_invalidation_error", key=key, error=str(e))


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
    except RedisError as e:
        await mark_redis_unavailable(e)
        return {"status": "error", "error": str(e)}
