"""
Base classes for caching.

This module defines:
- CacheProtocol: Abstract interface for read-through cache implementations
- SizeEstimator: Abstract byte-size measurement used by the eviction budget

Implementations support:
- get with a fetcher (hit / stale hit / miss)
- set/delete/clear
- TTL and stale-TTL expiration
- Cache statistics and monitoring
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, TypeVar

from cvcache.cache.entry import CacheOptions, CacheStats

T = TypeVar("T")


class SizeEstimator(ABC):
    """Converts a cached value into an approximate byte count."""

    @abstractmethod
    def size_of(self, value: Any) -> int:
        """Return the estimated size of value in bytes.

        Raises:
            SizeEstimationError: If the value cannot be measured.
        """
        ...


class CacheProtocol(ABC):
    """Abstract interface for read-through cache implementations."""

    @abstractmethod
    async def get(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        options: CacheOptions | None = None,
    ) -> T:
        """Get a value from the cache, fetching it on a miss."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, options: CacheOptions | None = None) -> None:
        """Set a value in the cache."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry, keeping hit/miss history."""
        ...

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check if a key is resident in the cache."""
        ...

    @abstractmethod
    def get_stats(self) -> CacheStats:
        """Return a snapshot of cache statistics."""
        ...
