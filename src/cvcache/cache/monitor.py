"""
Polling access to cache statistics for dashboards and health endpoints.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from cvcache.cache.base import CacheProtocol
from cvcache.cache.entry import CacheStats


async def watch_stats(
    cache: CacheProtocol,
    interval_ms: int = 5_000,
) -> AsyncIterator[CacheStats]:
    """Yield a stats snapshot now and then once per interval.

    Args:
        cache: Cache to observe.
        interval_ms: Polling interval in milliseconds. 0 yields a single
            snapshot and stops.

    Yields:
        CacheStats snapshots.
    """
    if interval_ms < 0:
        raise ValueError("interval_ms must be non-negative")

    yield cache.get_stats()
    if interval_ms == 0:
        return

    while True:
        await asyncio.sleep(interval_ms / 1000.0)
        yield cache.get_stats()


def format_stats(stats: CacheStats) -> str:
    """Render a one-line human summary of a stats snapshot."""
    return (
        f"hit rate {stats.hit_rate * 100:.2f}% "
        f"({stats.hits} hits, {stats.misses} misses, {stats.stale_hits} stale) "
        f"{stats.entries} entries, {stats.size_bytes / 1024 / 1024:.2f} MB"
    )
