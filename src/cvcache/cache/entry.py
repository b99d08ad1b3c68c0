"""
Core types for the cache.

- CacheOptions: immutable per-call options, validated at construction
- CacheEntry: one resident value with its write time, windows and size
- CacheStats: point-in-time statistics snapshot
- ReadOutcome: classification of a lookup
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from cvcache.exceptions import InvalidCacheOptionsError


class ReadOutcome(str, Enum):
    """Classification of a resident entry at read time."""

    HIT = "hit"
    STALE_HIT = "stale_hit"
    MISS = "miss"


@dataclass(frozen=True)
class CacheOptions:
    """Options for get/set/warm.

    Times are in milliseconds. ``stale_ttl`` is measured from the write time,
    like ``ttl``, so it must be at least ``ttl``. ``None`` fields fall back to
    the cache-wide defaults.
    """

    ttl: int | None = None
    stale_ttl: int | None = None
    version: str | None = None
    force_refresh: bool = False

    def __post_init__(self) -> None:
        if self.ttl is not None and self.ttl < 0:
            raise InvalidCacheOptionsError("ttl must be non-negative", {"ttl": self.ttl})
        if self.stale_ttl is not None and self.stale_ttl < 0:
            raise InvalidCacheOptionsError(
                "stale_ttl must be non-negative", {"stale_ttl": self.stale_ttl}
            )
        if (
            self.ttl is not None
            and self.stale_ttl is not None
            and self.stale_ttl < self.ttl
        ):
            raise InvalidCacheOptionsError(
                "stale_ttl must be >= ttl",
                {"ttl": self.ttl, "stale_ttl": self.stale_ttl},
            )


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with metadata.

    ``ttl`` is ``math.inf`` for entries that never go stale. ``stale_ttl`` of
    ``None`` means the entry becomes a hard miss as soon as the TTL passes.
    """

    key: str
    value: Any
    stored_at: float
    ttl: float
    stale_ttl: float | None
    size_bytes: int
    version: str | None = None

    @property
    def expires_after(self) -> float:
        """Age in milliseconds after which the entry is fully expired."""
        return self.stale_ttl if self.stale_ttl is not None else self.ttl

    def age(self, now: float) -> float:
        """Get the entry age in milliseconds."""
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) <= self.ttl

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.expires_after

    def classify(self, now: float) -> ReadOutcome:
        """Classify this entry as a hit, stale hit or miss at time ``now``."""
        if self.is_fresh(now):
            return ReadOutcome.HIT
        if not self.is_expired(now):
            return ReadOutcome.STALE_HIT
        return ReadOutcome.MISS

    def matches_version(self, requested: str | None) -> bool:
        """Check a requested version against the stored one.

        Reads that omit a version always match.
        """
        if requested is None:
            return True
        return self.version == requested


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache statistics."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    hit_rate: float = 0.0
    entries: int = 0
    size_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def resolve_window(value: int | None, default: int | None) -> float | None:
    """Pick a per-call window or the cache-wide default."""
    if value is not None:
        return float(value)
    if default is not None:
        return float(default)
    return None


def effective_ttl(value: int | None, default: int | None) -> float:
    """Resolve a TTL, treating an unset TTL as unbounded."""
    resolved = resolve_window(value, default)
    return math.inf if resolved is None else resolved
