"""
In-memory entry store with a byte budget.

Entries live in an OrderedDict in write order: every write moves the key to
the end, so the first item is always the oldest-written resident entry and is
the next eviction victim when the resident size exceeds the budget.
"""

from __future__ import annotations

import threading
from collections import OrderedDict

from cvcache.cache.entry import CacheEntry
from cvcache.logging import get_logger

logger = get_logger(__name__)


class EntryStore:
    """Write-ordered key -> CacheEntry mapping with size accounting.

    The cleanup scheduler runs on its own thread, so every mutation and
    multi-step read takes the store lock.
    """

    def __init__(self, max_size_bytes: int) -> None:
        self.max_size_bytes = max_size_bytes
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._size_bytes = 0
        self._lock = threading.RLock()
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    def occupancy(self) -> tuple[int, int]:
        """Get (entry count, resident bytes) as one consistent reading."""
        with self._lock:
            return len(self._entries), self._size_bytes

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        """Get resident keys, oldest write first."""
        with self._lock:
            return list(self._entries.keys())

    def put(self, entry: CacheEntry) -> list[str]:
        """Insert or replace an entry as the most recently written.

        Returns:
            Keys evicted to bring the resident size back within budget.
        """
        with self._lock:
            previous = self._entries.pop(entry.key, None)
            if previous is not None:
                self._size_bytes -= previous.size_bytes
            self._entries[entry.key] = entry
            self._size_bytes += entry.size_bytes
            return self._evict_if_needed()

    def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._size_bytes -= entry.size_bytes
            return True

    def clear(self) -> int:
        """Remove every entry and return how many were dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._size_bytes = 0
            return count

    def remove_expired(self, now: float) -> list[str]:
        """Drop entries past their stale horizon (or TTL when there is none)."""
        with self._lock:
            expired = [key for key, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                self._size_bytes -= self._entries.pop(key).size_bytes
            return expired

    def _evict_if_needed(self) -> list[str]:
        evicted: list[str] = []
        while self._size_bytes > self.max_size_bytes and self._entries:
            key, victim = self._entries.popitem(last=False)
            self._size_bytes -= victim.size_bytes
            self.evictions += 1
            evicted.append(key)

        if evicted:
            logger.info(
                "Evicted oldest entries",
                count=len(evicted),
                size_bytes=self._size_bytes,
                max_size_bytes=self.max_size_bytes,
            )
        return evicted
