"""
Read-through cache with stale-while-revalidate.

CacheService sits between data-access code and its remote fetchers:

- Fresh entries are returned without calling the fetcher (hit)
- Entries past their TTL but inside their stale horizon are returned
  immediately while a detached task refetches them (stale hit)
- Absent, version-mismatched or fully expired entries are fetched, stored
  and returned (miss); fetch errors propagate to the caller
- Writes are bounded by a byte budget, evicting oldest writes first
- A background thread sweeps fully expired entries on a fixed interval

Every fetch runs through the retry invoker. Concurrent misses on the same key
are not coalesced, and each stale hit schedules its own refresh.

Example:
    cache = get_cache_service()
    profile = await cache.get(
        "cv:profile",
        fetch_profile,
        CacheOptions(ttl=5 * 60 * 1000, stale_ttl=60 * 60 * 1000),
    )
"""

from __future__ import annotations

import time
from functools import lru_cache
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from cvcache.cache.base import CacheProtocol, SizeEstimator
from cvcache.cache.cleanup import CleanupScheduler
from cvcache.cache.entry import (
    CacheEntry,
    CacheOptions,
    CacheStats,
    ReadOutcome,
    effective_ttl,
    resolve_window,
)
from cvcache.cache.refresh import BackgroundRefresher
from cvcache.cache.sizing import JsonSizeEstimator
from cvcache.cache.stats import StatsTracker
from cvcache.cache.store import EntryStore
from cvcache.config import Settings, get_settings
from cvcache.exceptions import InvalidCacheOptionsError, SizeEstimationError
from cvcache.logging import get_logger, log_context, setup_logging
from cvcache.retry import RetryPolicy, with_retry

logger = get_logger(__name__)

T = TypeVar("T")

WarmItem = Sequence[Any]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class CacheService(CacheProtocol):
    """In-process cache with TTL, stale-while-revalidate and a size budget."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        size_estimator: SizeEstimator | None = None,
        retry_policy: RetryPolicy | None = None,
        now: Callable[[], float] | None = None,
        start_cleanup: bool = True,
    ) -> None:
        """Initialize the cache.

        Args:
            settings: Cache settings. Defaults to get_settings().
            size_estimator: Byte-size measurement. Defaults to JSON length.
            retry_policy: Backoff for fetcher calls. Defaults to the settings' policy.
            now: Clock returning milliseconds. Defaults to a monotonic clock.
            start_cleanup: Whether to start the periodic cleanup sweep.
        """
        self.settings = settings or get_settings()
        setup_logging(self.settings.LOG_LEVEL)
        self.retry_policy = retry_policy or self.settings.retry_policy()
        self._now = now or _monotonic_ms
        self._estimator = size_estimator or JsonSizeEstimator()
        self._store = EntryStore(self.settings.CACHE_MAX_SIZE_BYTES)
        self._stats = StatsTracker()
        self._refresher = BackgroundRefresher(self.settings.CACHE_MAX_BACKGROUND_REFRESHES)
        self._scheduler = CleanupScheduler(self.cleanup, self.settings.cleanup_interval_seconds)

        if start_cleanup:
            self._scheduler.start()

    @classmethod
    def get_instance(cls) -> CacheService:
        """Get the process-wide cache instance."""
        return get_cache_service()

    @property
    def cleanup_running(self) -> bool:
        return self._scheduler.running

    @property
    def pending_refreshes(self) -> int:
        return self._refresher.pending

    @property
    def refresh_failures(self) -> int:
        """Background refreshes that gave up since the cache was created."""
        return self._refresher.failures

    # --- reads ---

    async def get(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        options: CacheOptions | None = None,
    ) -> T:
        """Get a value from the cache or fetch it.

        Args:
            key: Cache key.
            fetcher: Zero-argument coroutine function producing the value.
            options: TTL, stale TTL, version and force_refresh for this call.

        Returns:
            The cached or freshly fetched value. On a stale hit this is the
            old value; the refreshed one is visible to later reads.

        Raises:
            InvalidCacheOptionsError: If the effective windows are invalid.
            Exception: Whatever the fetcher raised, after retries, on a miss.
        """
        options = options or CacheOptions()
        self._resolve_windows(key, options)

        with log_context(cache_key=key, operation="get"):
            if options.force_refresh:
                logger.debug("Force refresh requested", key=key)
                return await self._fetch_and_store(key, fetcher, options)

            entry = self._store.get(key)
            outcome = self._classify(key, entry, options)

            if outcome is ReadOutcome.HIT:
                self._stats.record(outcome)
                return entry.value

            if outcome is ReadOutcome.STALE_HIT:
                self._stats.record(outcome)

                async def refresh() -> None:
                    await self._fetch_and_store(key, fetcher, options)

                self._refresher.schedule(key, refresh)
                return entry.value

            value = await self._fetch_and_store(key, fetcher, options)
            self._stats.record(ReadOutcome.MISS)
            return value

    def has(self, key: str) -> bool:
        """Check if a key is resident, regardless of freshness.

        Does not call fetchers or update statistics.
        """
        return key in self._store

    def has_fresh(self, key: str) -> bool:
        """Check if a key is resident and still within its TTL."""
        entry = self._store.get(key)
        return entry is not None and entry.is_fresh(self._now())

    # --- writes ---

    async def set(self, key: str, value: Any, options: CacheOptions | None = None) -> None:
        """Store a value as the most recently written entry.

        Raises:
            InvalidCacheOptionsError: If the effective windows are invalid.
            SizeEstimationError: If the value cannot be measured.
        """
        with log_context(cache_key=key, operation="set"):
            self._write(key, value, options or CacheOptions())

    async def delete(self, key: str) -> bool:
        """Remove an entry. Returns False when the key was not resident."""
        removed = self._store.delete(key)
        logger.debug("Cache entry deleted", key=key, removed=removed)
        return removed

    async def clear(self) -> None:
        """Remove all entries. Hit/miss counters are preserved."""
        removed = self._store.clear()
        logger.info("Cache cleared", removed=removed)

    async def warm(self, entries: Iterable[WarmItem]) -> int:
        """Preload entries in order, each through the same path as set().

        Each item is ``(key, value)`` or ``(key, value, options)``. A failing
        item is logged and skipped; the others are still applied.

        Returns:
            Number of entries written.
        """
        items = list(entries)
        logger.info("Warming cache", count=len(items))

        written = 0
        for item in items:
            try:
                key, value, *rest = item
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed warm entry", item=repr(item), error=str(e))
                continue
            options = rest[0] if rest and rest[0] is not None else CacheOptions()
            with log_context(cache_key=key, operation="warm"):
                try:
                    self._write(key, value, options)
                except Exception as e:
                    logger.warning(
                        "Skipping warm entry",
                        key=key,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
            written += 1

        logger.info("Cache warmed", count=written, skipped=len(items) - written)
        return written

    # --- stats ---

    def get_stats(self) -> CacheStats:
        entries, size_bytes = self._store.occupancy()
        return self._stats.snapshot(entries, size_bytes)

    def reset_stats(self) -> None:
        """Zero hits, misses and stale hits without touching entries."""
        self._stats.reset()

    # --- housekeeping ---

    def cleanup(self) -> int:
        """Remove fully expired entries.

        Returns:
            Number of entries removed.
        """
        removed = self._store.remove_expired(self._now())
        if removed:
            logger.info("Cleaned up expired entries", cleaned=len(removed))
        return len(removed)

    async def wait_for_refreshes(self) -> None:
        """Wait for every pending background refresh to finish."""
        await self._refresher.wait()

    def destroy(self) -> None:
        """Stop the cleanup timer. Entries and statistics are kept."""
        self._scheduler.stop()
        logger.info("Cache cleanup timer stopped")

    async def aclose(self) -> None:
        """Stop the cleanup timer and drain background refreshes."""
        self.destroy()
        await self.wait_for_refreshes()

    async def __aenter__(self) -> CacheService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- internals ---

    def _classify(
        self,
        key: str,
        entry: CacheEntry | None,
        options: CacheOptions,
    ) -> ReadOutcome:
        if entry is None:
            logger.debug("Cache miss", key=key)
            return ReadOutcome.MISS

        if not entry.matches_version(options.version):
            logger.debug(
                "Cache version mismatch",
                key=key,
                cached=entry.version,
                requested=options.version,
            )
            return ReadOutcome.MISS

        now = self._now()
        outcome = entry.classify(now)
        logger.debug("Cache lookup", key=key, outcome=outcome.value, age_ms=entry.age(now))
        return outcome

    def _resolve_windows(self, key: str, options: CacheOptions) -> tuple[float, float | None]:
        ttl = effective_ttl(options.ttl, self.settings.CACHE_DEFAULT_TTL_MS)
        stale_ttl = resolve_window(options.stale_ttl, self.settings.CACHE_DEFAULT_STALE_TTL_MS)
        if stale_ttl is not None and stale_ttl < ttl:
            raise InvalidCacheOptionsError(
                "stale_ttl must be >= ttl",
                {"key": key, "ttl": ttl, "stale_ttl": stale_ttl},
            )
        return ttl, stale_ttl

    def _write(self, key: str, value: Any, options: CacheOptions) -> CacheEntry:
        ttl, stale_ttl = self._resolve_windows(key, options)
        size = self._estimator.size_of(value)

        entry = CacheEntry(
            key=key,
            value=value,
            stored_at=self._now(),
            ttl=ttl,
            stale_ttl=stale_ttl,
            size_bytes=size,
            version=options.version,
        )
        evicted = self._store.put(entry)
        if key in evicted:
            logger.warning(
                "Entry larger than cache budget was evicted immediately",
                key=key,
                size_bytes=size,
                max_size_bytes=self._store.max_size_bytes,
            )

        logger.debug("Value cached", key=key, size_bytes=size, ttl=ttl, stale_ttl=stale_ttl)
        return entry

    async def _fetch_and_store(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        options: CacheOptions,
    ) -> T:
        try:
            value = await with_retry(fetcher, self.retry_policy)
        except Exception as e:
            logger.error("Failed to fetch and cache", key=key, error=str(e))
            raise

        try:
            self._write(key, value, options)
        except SizeEstimationError as e:
            logger.warning("Fetched value returned without caching", key=key, error=str(e))
        return value


@lru_cache
def get_cache_service() -> CacheService:
    """Get the process-wide cache, creating it on first use.

    The cleanup timer starts with the instance. Tests that need a clean slate
    should call clear() and reset_stats(), or reset_cache_service().
    """
    return CacheService()


def reset_cache_service() -> None:
    """Stop and forget the process-wide cache (useful for testing)."""
    if get_cache_service.cache_info().currsize:
        get_cache_service().destroy()
    get_cache_service.cache_clear()
