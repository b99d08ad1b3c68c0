"""
Tests for the entry store and its eviction policy.
"""

from __future__ import annotations

import threading

from cvcache.cache.entry import CacheEntry, ReadOutcome
from cvcache.cache.stats import StatsTracker
from cvcache.cache.store import EntryStore


def make_entry(key: str, size: int, stored_at: float = 0.0, ttl: float = 1000.0) -> CacheEntry:
    return CacheEntry(
        key=key,
        value=key,
        stored_at=stored_at,
        ttl=ttl,
        stale_ttl=None,
        size_bytes=size,
    )


class TestEntryStore:
    """Tests for basic store operations."""

    def test_put_and_get(self) -> None:
        store = EntryStore(max_size_bytes=100)
        entry = make_entry("a", 10)

        assert store.put(entry) == []
        assert store.get("a") is entry
        assert "a" in store
        assert len(store) == 1
        assert store.size_bytes == 10

    def test_overwrite_replaces_size(self) -> None:
        store = EntryStore(max_size_bytes=100)
        store.put(make_entry("a", 10))
        store.put(make_entry("a", 30))

        assert len(store) == 1
        assert store.size_bytes == 30

    def test_delete_and_clear(self) -> None:
        store = EntryStore(max_size_bytes=100)
        store.put(make_entry("a", 10))
        store.put(make_entry("b", 20))

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.size_bytes == 20

        assert store.clear() == 1
        assert len(store) == 0
        assert store.size_bytes == 0

    def test_occupancy_is_consistent_under_concurrent_sweeps(self) -> None:
        """Test that count and size are read together while another thread mutates."""
        store = EntryStore(max_size_bytes=10_000)
        stop = threading.Event()

        def churn() -> None:
            while not stop.is_set():
                for i in range(20):
                    store.put(make_entry(f"k{i}", 10, ttl=0))
                store.remove_expired(now=1.0)

        worker = threading.Thread(target=churn, daemon=True)
        worker.start()
        try:
            for _ in range(2000):
                entries, size_bytes = store.occupancy()
                assert size_bytes == entries * 10
        finally:
            stop.set()
            worker.join(timeout=2.0)


class TestEviction:
    """Tests for oldest-write-first eviction."""

    def test_evicts_oldest_until_within_budget(self) -> None:
        store = EntryStore(max_size_bytes=50)
        for key in ("a", "b", "c"):
            store.put(make_entry(key, 20))

        assert store.keys() == ["b", "c"]
        assert store.size_bytes == 40
        assert store.evictions == 1

    def test_may_evict_several_entries_for_one_write(self) -> None:
        store = EntryStore(max_size_bytes=50)
        for key in ("a", "b", "c", "d", "e"):
            store.put(make_entry(key, 10))

        evicted = store.put(make_entry("big", 35))

        assert evicted == ["a", "b", "c", "d"]
        assert store.keys() == ["e", "big"]
        assert store.size_bytes == 45

    def test_rewrite_refreshes_eviction_order(self) -> None:
        store = EntryStore(max_size_bytes=30)
        store.put(make_entry("a", 10))
        store.put(make_entry("b", 10))
        store.put(make_entry("a", 10))
        store.put(make_entry("c", 15))

        assert store.keys() == ["a", "c"]

    def test_exact_budget_is_not_exceeded(self) -> None:
        store = EntryStore(max_size_bytes=20)
        store.put(make_entry("a", 10))
        store.put(make_entry("b", 10))

        assert store.keys() == ["a", "b"]
        assert store.evictions == 0

    def test_oversized_entry_is_evicted_itself(self) -> None:
        store = EntryStore(max_size_bytes=20)
        store.put(make_entry("a", 10))

        evicted = store.put(make_entry("huge", 25))

        assert evicted == ["a", "huge"]
        assert len(store) == 0
        assert store.size_bytes == 0


class TestRemoveExpired:
    """Tests for the expiry sweep primitive."""

    def test_removes_only_expired(self) -> None:
        store = EntryStore(max_size_bytes=100)
        store.put(make_entry("old", 10, stored_at=0, ttl=1000))
        store.put(make_entry("new", 10, stored_at=500, ttl=1000))

        removed = store.remove_expired(now=1200)

        assert removed == ["old"]
        assert store.keys() == ["new"]
        assert store.size_bytes == 10


class TestStatsTracker:
    """Tests for outcome counters."""

    def test_hit_rate_excludes_stale_hits(self) -> None:
        tracker = StatsTracker()
        tracker.record(ReadOutcome.MISS)
        tracker.record(ReadOutcome.HIT)
        tracker.record(ReadOutcome.HIT)
        tracker.record(ReadOutcome.STALE_HIT)

        stats = tracker.snapshot(entries=3, size_bytes=42)

        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.stale_hits == 1
        assert stats.hit_rate == 2 / 3
        assert stats.entries == 3
        assert stats.size_bytes == 42

    def test_hit_rate_zero_without_reads(self) -> None:
        assert StatsTracker().hit_rate == 0.0

    def test_reset(self) -> None:
        tracker = StatsTracker()
        tracker.record(ReadOutcome.HIT)
        tracker.reset()

        assert tracker.snapshot(0, 0).hits == 0
