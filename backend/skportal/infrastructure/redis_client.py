"""
Shared async Redis client used for per-event locks and capacity caching.

Redis is an accelerator, never the source of truth: every caller treats a
missing client (disabled or unreachable) as "carry on without Redis".

After a failed connect, or a connection error reported by a caller, the
client is dropped and Redis is skipped for REDIS_RETRY_BACKOFF seconds, so an
outage costs one timeout per back-off window instead of one per request.
"""

import time
from typing import Optional

import redis.asyncio as redis

from skportal.core.config import get_settings
from skportal.core.logging import get_logger
from skportal.core.metrics import redis_connection_errors, redis_circuit_breaker_open

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None
# time.monotonic() before which get_redis() does not try to reconnect
_retry_after: float = 0.0


def _open_circuit() -> None:
    global _retry_after
    _retry_after = time.monotonic() + get_settings().REDIS_RETRY_BACKOFF
    redis_connection_errors.inc()
    redis_circuit_breaker_open.set(1)


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled, down or backing off."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if time.monotonic() < _retry_after:
            return None
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            _open_circuit()
            logger.error("redis_connection_failed", error=str(e), retry_in=settings.REDIS_RETRY_BACKOFF)
            await client.aclose()
            return None
        _redis_client = client
        redis_circuit_breaker_open.set(0)
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def mark_redis_unavailable(error: Exception) -> None:
    """
    Report a failed Redis call. Connection and timeout errors drop the shared
    client and start the back-off; other Redis errors leave it in place.
    """
    global _redis_client
    if not isinstance(error, (redis.ConnectionError, redis.TimeoutError)):
        return

    _open_circuit()
    client, _redis_client = _redis_client, None
    if client is None:
        return
    logger.warning("redis_marked_unavailable", error=str(error), retry_in=get_settings().REDIS_RETRY_BACKOFF)
    try:
        await client.aclose()
    except redis.RedisError as e:
        logger.warning("redis_close_failed", error=str(e))


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client, _retry_after
    _retry_after = 0.0
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
