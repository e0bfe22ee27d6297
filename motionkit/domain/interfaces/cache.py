"""Interface for caching mechanisms.

Defines the contract for storing, retrieving, and invalidating cached
collections with TTL expiry and bounded size.
"""

import abc
from typing import Any, Awaitable, Callable, Optional

# Import relevant domain models
from ..models.common import CacheKey, CacheStats


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    def get(self, key: CacheKey, default: Any = None) -> Any:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.
            default: Returned on a miss (expired or absent key).

        Returns:
            The cached item if found and not expired, otherwise ``default``.
        """

    @abc.abstractmethod
    def set(self, key: CacheKey, value: Any) -> None:
        """Stores an item with the cache's configured TTL.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
        """

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Deletes a single item. Returns True if it was present."""

    @abc.abstractmethod
    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Deletes every key starting with ``prefix``, or everything if None.

        Returns:
            The number of entries removed.
        """

    @abc.abstractmethod
    async def with_cache(self, key: CacheKey, producer: Callable[[], Awaitable[Any]]) -> Any:
        """Returns the cached value for ``key`` or awaits ``producer`` and caches it.

        Only successful results are stored; a producer failure propagates and
        leaves the key absent.
        """

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Returns occupancy and hit/miss counters."""
