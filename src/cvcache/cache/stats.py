"""
Hit/miss/stale-hit counters.

Counters only grow until reset() is called explicitly; clearing the store does
not touch them. Stale hits are counted but excluded from the hit rate.
"""

from __future__ import annotations

import threading

from cvcache.cache.entry import CacheStats, ReadOutcome


class StatsTracker:
    """Thread-safe read outcome counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.stale_hits = 0

    def record(self, outcome: ReadOutcome) -> None:
        """Count one read outcome."""
        with self._lock:
            if outcome is ReadOutcome.HIT:
                self.hits += 1
            elif outcome is ReadOutcome.STALE_HIT:
                self.stale_hits += 1
            else:
                self.misses += 1

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.stale_hits = 0

    @property
    def hit_rate(self) -> float:
        """hits / (hits + misses), or 0.0 before any counted read."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def snapshot(self, entries: int, size_bytes: int) -> CacheStats:
        """Combine the counters with store occupancy into a CacheStats."""
        with self._lock:
            return CacheStats(
                hits=self.hits,
                misses=self.misses,
                stale_hits=self.stale_hits,
                hit_rate=self.hit_rate,
                entries=entries,
                size_bytes=size_bytes,
            )
