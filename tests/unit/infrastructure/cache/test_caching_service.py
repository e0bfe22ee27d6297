import asyncio

import pytest

from motionkit.domain.errors import OperationCancelledError
from motionkit.infrastructure.cache.caching_service import CachingServiceImpl


@pytest.fixture
def cache(fake_clock):
    return CachingServiceImpl(ttl_seconds=60, max_size=3, name="test", clock=fake_clock)


# --- TTL ---

def test_get_within_ttl_returns_value(cache, fake_clock):
    cache.set("k", {"v": 1})
    fake_clock.advance(59.9)
    assert cache.get("k") == {"v": 1}


def test_get_at_or_after_ttl_misses_and_drops_entry(cache, fake_clock):
    cache.set("k", "value")
    fake_clock.advance(60)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_overwrite_refreshes_expiry(cache, fake_clock):
    cache.set("k", "old")
    fake_clock.advance(50)
    cache.set("k", "new")
    fake_clock.advance(50)
    assert cache.get("k") == "new"


def test_ttl_timeline_end_to_end(fake_clock):
    """TTL=1s: hit at 0.5s, miss at 1.1s, then the producer is called again."""
    cache = CachingServiceImpl(ttl_seconds=1, max_size=10, clock=fake_clock)
    calls = []

    async def producer():
        calls.append(fake_clock.now)
        return f"value-{len(calls)}"

    async def scenario():
        first = await cache.with_cache("k", producer)
        fake_clock.advance(0.5)
        second = await cache.with_cache("k", producer)
        fake_clock.advance(0.6)
        third = await cache.with_cache("k", producer)
        return first, second, third

    assert asyncio.run(scenario()) == ("value-1", "value-1", "value-2")
    assert len(calls) == 2


# --- LRU ---

def test_evicts_least_recently_accessed_key(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.get("a")  # b is now the least recently used

    cache.set("d", 4)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.get("d") == 4
    assert cache.stats()["evictions"] == 1


def test_overwrite_at_capacity_does_not_evict(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    cache.set("a", 10)

    assert len(cache) == 3
    assert cache.get("a") == 10
    assert cache.get("b") == 2


def test_size_never_exceeds_max(cache):
    for i in range(10):
        cache.set(f"k{i}", i)
    assert len(cache) == 3
    assert cache.get("k9") == 9


# --- Invalidation / cleanup ---

def test_invalidate_by_prefix(cache):
    cache.set("projects:workspace:1", ["p1"])
    cache.set("projects:workspace:2", ["p2"])
    cache.set("users:all", ["u"])

    removed = cache.invalidate("projects:")

    assert removed == 2
    assert cache.get("projects:workspace:1") is None
    assert cache.get("users:all") == ["u"]


def test_invalidate_matches_prefix_not_substring(cache):
    cache.set("projects:1", ["p1"])
    cache.set("x:projects:1", ["x"])

    assert cache.invalidate("projects:") == 1
    assert cache.get("x:projects:1") == ["x"]


def test_invalidate_without_prefix_clears_everything(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_get_default_distinguishes_cached_none(cache):
    missing = object()
    cache.set("empty", None)

    assert cache.get("empty", missing) is None
    assert cache.get("absent", missing) is missing
    assert cache.delete("empty") is True


def test_cleanup_removes_only_expired_entries(cache, fake_clock):
    cache.set("old", 1)
    fake_clock.advance(30)
    cache.set("young", 2)
    fake_clock.advance(31)

    assert cache.cleanup() == 1
    assert cache.get("young") == 2
    assert len(cache) == 1


def test_delete_missing_key_is_noop(cache):
    assert cache.delete("nope") is False
    assert len(cache) == 0


# --- with_cache ---

def test_with_cache_calls_producer_once_on_happy_path(cache):
    calls = []

    async def producer():
        calls.append(1)
        return ["w1", "w2"]

    async def scenario():
        first = await cache.with_cache("workspaces", producer)
        second = await cache.with_cache("workspaces", producer)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second == ["w1", "w2"]
    assert len(calls) == 1
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_with_cache_does_not_cache_producer_failure(cache):
    async def failing():
        raise ValueError("upstream down")

    with pytest.raises(ValueError, match="upstream down"):
        asyncio.run(cache.with_cache("k", failing))

    assert cache.get("k") is None
    assert cache.stats()["in_flight"] == 0


def test_with_cache_single_flight_shares_one_producer_call(cache):
    calls = []

    async def scenario():
        gate = asyncio.Event()

        async def producer():
            calls.append(1)
            await gate.wait()
            return "shared"

        first = asyncio.create_task(cache.with_cache("k", producer))
        second = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        gate.set()
        return await asyncio.gather(first, second)

    assert asyncio.run(scenario()) == ["shared", "shared"]
    assert len(calls) == 1


def test_with_cache_single_flight_followers_see_the_failure(cache):
    async def scenario():
        gate = asyncio.Event()

        async def producer():
            await gate.wait()
            raise RuntimeError("boom")

        first = asyncio.create_task(cache.with_cache("k", producer))
        second = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        gate.set()
        return await asyncio.gather(first, second, return_exceptions=True)

    results = asyncio.run(scenario())
    assert all(isinstance(r, RuntimeError) for r in results)
    assert cache.get("k") is None


def test_with_cache_without_single_flight_calls_each_producer(fake_clock):
    cache = CachingServiceImpl(ttl_seconds=60, max_size=3, clock=fake_clock, single_flight=False)
    calls = []

    async def scenario():
        gate = asyncio.Event()

        async def producer():
            calls.append(1)
            await gate.wait()
            return len(calls)

        first = asyncio.create_task(cache.with_cache("k", producer))
        second = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        gate.set()
        return await asyncio.gather(first, second)

    asyncio.run(scenario())
    assert len(calls) == 2


@pytest.mark.parametrize("kwargs", [{"max_size": 0}, {"ttl_seconds": 0}])
def test_rejects_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        CachingServiceImpl(**kwargs)


def test_with_cache_follower_survives_cancelled_leader(cache):
    calls = []

    async def scenario():
        gate = asyncio.Event()

        async def producer():
            calls.append(1)
            await gate.wait()
            return "value"

        leader = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        follower = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        leader.cancel()
        gate.set()
        return await asyncio.gather(leader, follower, return_exceptions=True)

    leader_result, follower_result = asyncio.run(scenario())

    assert isinstance(leader_result, asyncio.CancelledError)
    assert follower_result == "value"
    assert len(calls) == 2
    assert cache.get("k") == "value"
    assert cache.stats()["in_flight"] == 0


def test_with_cache_follower_survives_leader_token_cancellation(cache):
    async def scenario():
        gate = asyncio.Event()

        async def cancelled_producer():
            await gate.wait()
            raise OperationCancelledError("caller gave up")

        async def producer():
            return "value"

        leader = asyncio.create_task(cache.with_cache("k", cancelled_producer))
        await asyncio.sleep(0)
        follower = asyncio.create_task(cache.with_cache("k", producer))
        await asyncio.sleep(0)
        gate.set()
        return await asyncio.gather(leader, follower, return_exceptions=True)

    leader_result, follower_result = asyncio.run(scenario())

    assert isinstance(leader_result, OperationCancelledError)
    assert follower_result == "value"


def test_auto_cleanup_sweeps_expired_entries(cache, fake_clock):
    async def scenario():
        cache.set("old", 1)
        fake_clock.advance(60)
        cache.start_auto_cleanup(interval_seconds=0.01)
        await asyncio.sleep(0.05)
        await cache.stop_auto_cleanup()

    asyncio.run(scenario())

    assert len(cache) == 0


def test_auto_cleanup_interval_defaults_to_half_ttl_with_floor():
    cache = CachingServiceImpl(ttl_seconds=600)

    async def scenario():
        task = cache.start_auto_cleanup()
        assert cache.start_auto_cleanup() is task
        await cache.stop_auto_cleanup()
        return task

    assert asyncio.run(scenario()).cancelled()
