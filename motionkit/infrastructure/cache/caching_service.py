"""Concrete implementation of the in-memory Caching Service.

A bounded TTL + LRU store. Entries expire ``ttl_seconds`` after they were
written and are dropped lazily on access; when a new key arrives at capacity
the least-recently-used entry is evicted first. ``with_cache`` adds
single-flight deduplication so concurrent misses for one key share a single
producer call.

Not thread-safe: intended for use from one asyncio event loop.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

# Domain Layer Imports
from motionkit.domain.errors import OperationCancelledError
from motionkit.domain.events.api_events import CacheEntryEvicted, dispatch_event
from motionkit.domain.interfaces.cache import CacheService
from motionkit.domain.models.common import CacheKey, CacheStats

logger = logging.getLogger(__name__)

# Default Configuration Constants (overridden from settings in main.py)
DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_SIZE = 1000
MIN_CLEANUP_INTERVAL_SECONDS = 30

_MISS = object()


class _ProducerAbandoned(Exception):
    """The caller running a shared producer was cancelled before it finished."""


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    expiry_time: float  # Clock reading after which the entry is invisible


def _consume_outcome(future: "asyncio.Future[Any]") -> None:
    # Marks the exception as retrieved when no follower was waiting on it.
    if not future.cancelled():
        future.exception()


class CachingServiceImpl(CacheService):
    """TTL + LRU bounded cache with single-flight ``with_cache``."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
        single_flight: bool = True,
    ):
        """Initializes the caching service.

        Args:
            ttl_seconds: Lifetime of an entry from the moment it is written.
            max_size: Maximum number of entries kept at once.
            name: Label used in log records (e.g. 'workspaces').
            clock: Monotonic time source in seconds; injectable for tests.
            single_flight: Share one producer call among concurrent misses.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._store: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[CacheKey, "asyncio.Future[Any]"] = {}
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.name = name
        self.single_flight = single_flight
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._cleanup_task: Optional["asyncio.Task[None]"] = None

        logger.debug(f"CachingService '{name}' initialized (ttl={ttl_seconds}s, max={max_size})")

    def __len__(self) -> int:
        return len(self._store)

    def _lookup(self, key: CacheKey) -> Any:
        """Returns the live value or ``_MISS``; drops the entry if it has expired."""
        entry = self._store.get(key)
        if entry is None:
            return _MISS
        if self._clock() >= entry.expiry_time:
            del self._store[key]
            logger.debug(f"Cache entry expired: {key}", extra={"fields": {"cache": self.name, "key": key}})
            return _MISS
        # Most-recently-used entries live at the end.
        self._store.move_to_end(key)
        return entry.value

    def _evict_lru(self) -> None:
        evicted_key, _ = self._store.popitem(last=False)
        self._evictions += 1
        logger.debug(
            f"Cache eviction - removed least-recently-used entry from '{self.name}'",
            extra={"fields": {"cache": self.name, "key": evicted_key, "reason": "maxSize", "currentSize": len(self._store)}},
        )
        dispatch_event(CacheEntryEvicted(key=evicted_key, size=len(self._store)))

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey, default: Any = None) -> Any:
        """Retrieves a live item and promotes it to most-recently-used.

        A miss returns ``default``; pass a sentinel to tell a cached None
        apart from an absent key.
        """
        value = self._lookup(key)
        if value is _MISS:
            self._misses += 1
            return default
        self._hits += 1
        return value

    def set(self, key: CacheKey, value: Any) -> None:
        """Stores an item; a new key at capacity evicts the LRU entry first."""
        if key in self._store:
            # Overwrite never evicts; refresh expiry and recency.
            self._store.move_to_end(key)
        elif len(self._store) >= self.max_size:
            self._evict_lru()
        self._store[key] = CacheEntry(value=value, expiry_time=self._clock() + self.ttl_seconds)

    def delete(self, key: CacheKey) -> bool:
        if key not in self._store:
            return False
        del self._store[key]
        logger.debug(f"Deleted cache entry: {key}", extra={"fields": {"cache": self.name, "key": key}})
        return True

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Deletes keys with the exact string prefix, or clears the cache."""
        if not prefix:
            removed = len(self._store)
            self._store.clear()
            logger.debug(f"Cache '{self.name}' cleared", extra={"fields": {"cache": self.name, "removed": removed}})
            return removed

        doomed = [k for k in self._store if k.startswith(prefix)]
        for k in doomed:
            del self._store[k]
        if doomed:
            logger.debug(
                f"Cache invalidation in '{self.name}'",
                extra={"fields": {"cache": self.name, "pattern": prefix, "invalidatedCount": len(doomed), "remainingSize": len(self._store)}},
            )
        return len(doomed)

    def cleanup(self) -> int:
        """Sweeps entries that have already expired. Returns the number removed."""
        now = self._clock()
        expired = [k for k, entry in self._store.items() if now >= entry.expiry_time]
        for k in expired:
            del self._store[k]
        if expired:
            logger.debug(
                f"Cache cleanup in '{self.name}'",
                extra={"fields": {"cache": self.name, "cleanedCount": len(expired), "remainingSize": len(self._store)}},
            )
        return len(expired)

    async def with_cache(self, key: CacheKey, producer: Callable[[], Awaitable[Any]]) -> Any:
        """Returns the cached value for ``key`` or awaits ``producer`` and caches it.

        With single-flight on, a caller that misses while another caller is
        already producing the key waits for that result instead. If the
        producing caller is cancelled first, the waiters are released and one
        of them runs ``producer`` itself.

        Args:
            key: Caller-built cache key; it must encode every filter/scope.
            producer: Zero-argument coroutine function that fetches the value.

        Returns:
            The cached or freshly produced value.

        Raises:
            Exception: Whatever ``producer`` raised. Nothing is cached then.
        """
        cached = self._lookup(key)
        if cached is not _MISS:
            self._hits += 1
            logger.debug(f"Cache hit: {key}", extra={"fields": {"cache": self.name, "key": key}})
            return cached
        self._misses += 1

        if not self.single_flight:
            return await self._produce(key, producer, None)

        while True:
            pending = self._in_flight.get(key)
            if pending is None:
                break
            logger.debug(f"Cache miss joined in-flight producer: {key}", extra={"fields": {"cache": self.name, "key": key}})
            try:
                # Shielded so one impatient follower cannot cancel the shared call.
                return await asyncio.shield(pending)
            except _ProducerAbandoned:
                cached = self._lookup(key)
                if cached is not _MISS:
                    return cached
                logger.debug(f"In-flight producer abandoned, taking over: {key}", extra={"fields": {"cache": self.name, "key": key}})

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_outcome)
        self._in_flight[key] = future
        return await self._produce(key, producer, future)

    async def _produce(
        self,
        key: CacheKey,
        producer: Callable[[], Awaitable[Any]],
        future: Optional["asyncio.Future[Any]"],
    ) -> Any:
        try:
            result = await producer()
        except (asyncio.CancelledError, OperationCancelledError):
            # The cancellation belongs to this caller only; waiters retry.
            if future is not None:
                future.set_exception(_ProducerAbandoned(key))
            raise
        except Exception as e:
            logger.error(
                f"Cache producer failed for key: {key}",
                extra={"fields": {"cache": self.name, "key": key, "error": str(e)}},
            )
            if future is not None:
                future.set_exception(e)
            raise
        finally:
            if future is not None:
                self._in_flight.pop(key, None)

        self.set(key, result)
        if future is not None:
            future.set_result(result)
        logger.debug(f"Cache miss - stored: {key}", extra={"fields": {"cache": self.name, "key": key}})
        return result

    # --- Periodic cleanup ---

    def start_auto_cleanup(self, interval_seconds: Optional[float] = None) -> "asyncio.Task[None]":
        """Starts a background sweep on the running loop.

        Args:
            interval_seconds: Time between sweeps; defaults to half the TTL,
                but never less than 30 seconds.

        Returns:
            The sweeping task. Stop it with ``stop_auto_cleanup``.
        """
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return self._cleanup_task
        interval = interval_seconds if interval_seconds is not None else max(MIN_CLEANUP_INTERVAL_SECONDS, self.ttl_seconds / 2)
        if interval <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval}")

        async def sweep() -> None:
            while True:
                await asyncio.sleep(interval)
                self.cleanup()

        self._cleanup_task = asyncio.get_running_loop().create_task(sweep())
        logger.debug(f"Auto cleanup started for '{self.name}' every {interval}s")
        return self._cleanup_task

    async def stop_auto_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._store),
            max_size=self.max_size,
            ttl_seconds=self.ttl_seconds,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            in_flight=len(self._in_flight),
        )
