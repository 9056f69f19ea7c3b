"""
Tests for the per-event registration lock and its fallback to in-process locks.
"""

import asyncio
import importlib

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from skportal.core.config import get_settings
from skportal.core.exceptions import TransientFailureError
from skportal.infrastructure.event_lock import event_lock

# The package re-exports event_lock(), which shadows the submodule attribute
event_lock_module = importlib.import_module("skportal.infrastructure.event_lock")


class FakeRedisLock:
    def __init__(self, acquire_result=True, acquire_error=None):
        self.acquire_result = acquire_result
        self.acquire_error = acquire_error
        self.released = False

    async def acquire(self):
        if self.acquire_error:
            raise self.acquire_error
        return self.acquire_result

    async def release(self):
        self.released = True


class FakeRedis:
    def __init__(self, lock):
        self._lock = lock
        self.lock_names = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.lock_names.append(name)
        return self._lock


def use_redis(monkeypatch, client):
    async def fake_get_redis():
        return client

    monkeypatch.setattr(event_lock_module, "get_redis", fake_get_redis)


async def critical_section(event_id, trace, name):
    async with event_lock(event_id):
        trace.append(f"{name}-in")
        await asyncio.sleep(0.01)
        trace.append(f"{name}-out")


@pytest.mark.asyncio
async def test_local_lock_serializes_same_event():
    trace = []
    await asyncio.gather(*[critical_section(1, trace, n) for n in ("a", "b", "c")])

    # No section starts before the previous one has finished
    for i in range(0, len(trace), 2):
        assert trace[i].endswith("-in")
        assert trace[i + 1] == trace[i].replace("-in", "-out")


@pytest.mark.asyncio
async def test_local_lock_does_not_block_other_events():
    trace = []
    await asyncio.gather(critical_section(1, trace, "a"), critical_section(2, trace, "b"))
    assert set(trace[:2]) == {"a-in", "b-in"}


@pytest.mark.asyncio
async def test_local_lock_wait_times_out(monkeypatch):
    monkeypatch.setattr(get_settings(), "REGISTRATION_LOCK_WAIT", 0.05)

    async def hold():
        async with event_lock(7):
            await asyncio.sleep(0.3)

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0.01)

    with pytest.raises(TransientFailureError):
        async with event_lock(7):
            pass

    await holder


@pytest.mark.asyncio
async def test_redis_lock_used_when_available(monkeypatch):
    lock = FakeRedisLock()
    client = FakeRedis(lock)
    use_redis(monkeypatch, client)

    async with event_lock(42):
        pass

    assert client.lock_names == ["registration-lock:42"]
    assert lock.released is True


@pytest.mark.asyncio
async def test_redis_lock_not_acquired_is_transient(monkeypatch):
    lock = FakeRedisLock(acquire_result=False)
    use_redis(monkeypatch, FakeRedis(lock))

    with pytest.raises(TransientFailureError):
        async with event_lock(42):
            pass
    assert lock.released is False


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_local_lock(monkeypatch):
    use_redis(monkeypatch, FakeRedis(FakeRedisLock(acquire_error=RedisConnectionError("down"))))

    trace = []
    await asyncio.gather(critical_section(3, trace, "a"), critical_section(3, trace, "b"))

    assert trace in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


def local_registry() -> dict:
    return event_lock_module._local_locks.get(asyncio.get_running_loop(), {})


@pytest.mark.asyncio
async def test_local_lock_entries_are_pruned_when_idle():
    trace = []
    await asyncio.gather(*[critical_section(event_id, trace, str(event_id)) for event_id in range(100, 120)])

    assert len(trace) == 40
    assert not any(event_id in local_registry() for event_id in range(100, 120))


@pytest.mark.asyncio
async def test_local_lock_entry_kept_while_waited_on(monkeypatch):
    monkeypatch.setattr(get_settings(), "REGISTRATION_LOCK_WAIT", 1.0)
    release = asyncio.Event()

    async def hold():
        async with event_lock(8):
            await release.wait()

    async def wait_turn():
        async with event_lock(8):
            pass

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0.01)
    waiter = asyncio.create_task(wait_turn())
    await asyncio.sleep(0.01)

    assert local_registry()[8].users == 2

    release.set()
    await asyncio.gather(holder, waiter)
    assert 8 not in local_registry()


@pytest.mark.asyncio
async def test_local_lock_usable_after_timeout(monkeypatch):
    monkeypatch.setattr(get_settings(), "REGISTRATION_LOCK_WAIT", 0.05)
    release = asyncio.Event()

    async def hold():
        async with event_lock(9):
            await release.wait()

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0.01)

    with pytest.raises(TransientFailureError):
        async with event_lock(9):
            pass

    # the timed-out waiter neither holds the lock nor stays registered
    assert local_registry()[9].users == 1
    release.set()
    await holder
    assert 9 not in local_registry()

    async with event_lock(9):
        assert local_registry()[9].lock.locked()
    assert 9 not in local_registry()


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_lock_free(monkeypatch):
    monkeypatch.setattr(get_settings(), "REGISTRATION_LOCK_WAIT", 1.0)
    release = asyncio.Event()

    async def hold():
        async with event_lock(10):
            await release.wait()

    async def wait_turn():
        async with event_lock(10):
            pass

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0.01)
    waiter = asyncio.create_task(wait_turn())
    await asyncio.sleep(0.01)

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    release.set()
    await holder
    assert 10 not in local_registry()
    async with event_lock(10):
        pass


@pytest.mark.asyncio
async def test_redis_failure_reports_client_unavailable(monkeypatch):
    reported = []

    async def fake_mark_unavailable(error):
        reported.append(error)

    monkeypatch.setattr(event_lock_module, "mark_redis_unavailable", fake_mark_unavailable)
    use_redis(monkeypatch, FakeRedis(FakeRedisLock(acquire_error=RedisConnectionError("down"))))

    async with event_lock(11):
        pass

    assert len(reported) == 1
    assert isinstance(reported[0], RedisConnectionError)
