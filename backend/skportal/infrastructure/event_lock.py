"""
Per-event serialization of the registration critical section.

"No active duplicate" + "insert registration" + "bump participant count" must
not interleave between two requests for the same event. The lock makes that
the common case cheap:

- Redis lock `registration-lock:{event_id}` when Redis is available, so
  several API workers serialize on the same key.
- Otherwise an in-process asyncio.Lock per (running loop, event id). An entry
  lives only while some request holds or waits for it.

Circuit breaker: if Redis errors while locking, we fail open to the local
lock and the Redis client backs off before reconnecting. The database stays
authoritative either way (partial unique index on active registrations,
version-guarded participant count), so a degraded lock costs retries, never
correctness.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import LockError, RedisError

from skportal.core.config import get_settings
from skportal.core.exceptions import TransientFailureError
from skportal.core.logging import get_logger
from skportal.core.metrics import record_lock_acquisition
from skportal.infrastructure.redis_client import get_redis, mark_redis_unavailable

logger = get_logger(__name__)


class _LocalLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0  # holders plus waiters


# asyncio.Lock binds to the loop it first waits on; keep one registry per loop
_local_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[int, _LocalLock]]" = (
    weakref.WeakKeyDictionary()
)


async def _acquire_within(lock: asyncio.Lock, wait: float) -> bool:
    """
    Acquire ``lock`` or give up after ``wait`` seconds.

    A grant that lands as the timeout fires is kept rather than lost, which
    wait_for(lock.acquire()) does not guarantee on every Python version.
    """
    acquire = asyncio.ensure_future(lock.acquire())
    try:
        await asyncio.wait({acquire}, timeout=wait)
    except asyncio.CancelledError:
        if not acquire.cancel():
            lock.release()
        raise
    # cancel() is False only when the acquire already completed
    return not acquire.cancel()


@asynccontextmanager
async def _local_event_lock(event_id: int, wait: float) -> AsyncIterator[None]:
    locks = _local_locks.setdefault(asyncio.get_running_loop(), {})
    entry = locks.get(event_id)
    if entry is None:
        entry = locks[event_id] = _LocalLock()
    entry.users += 1
    try:
        if not await _acquire_within(entry.lock, wait):
            logger.warning("event_lock_timeout", event_id=event_id, backend="local")
            raise TransientFailureError()
        record_lock_acquisition("local")
        try:
            yield
        finally:
            entry.lock.release()
    finally:
        entry.users -= 1
        if entry.users == 0:
            del locks[event_id]


@asynccontextmanager
async def event_lock(event_id: int) -> AsyncIterator[None]:
    """Hold the registration lock for ``event_id`` for the duration of the block."""
    settings = get_settings()
    client = await get_redis()

    if client is None:
        async with _local_event_lock(event_id, settings.REGISTRATION_LOCK_WAIT):
            yield
        return

    lock = client.lock(
        f"registration-lock:{event_id}",
        timeout=settings.REGISTRATION_LOCK_TIMEOUT,
        blocking_timeout=settings.REGISTRATION_LOCK_WAIT,
    )
    try:
        acquired = await lock.acquire()
    except RedisError as e:
        await mark_redis_unavailable(e)
        logger.warning("event_lock_redis_unavailable", event_id=event_id, error=str(e))
        async with _local_event_lock(event_id, settings.REGISTRATION_LOCK_WAIT):
            yield
        return

    if not acquired:
        logger.warning("event_lock_timeout", event_id=event_id, backend="redis")
        raise TransientFailureError()

    record_lock_acquisition("redis")
    try:
        yield
    finally:
        try:
            await lock.release()
        except (LockError, RedisError) as e:
            # Lock expired or Redis dropped; the key times out on its own
            logger.warning("event_lock_release_failed", event_id=event_id, error=str(e))
