"""
Cache package for CV content fetched from remote storage.

This package provides:
- Entry store with write-ordered eviction (store.py)
- Size estimation for the byte budget (sizing.py)
- Stale-while-revalidate read-through service (service.py)
- Background refresh and periodic cleanup (refresh.py, cleanup.py)
- Statistics tracking and polling (stats.py, monitor.py)
"""

from cvcache.cache.base import CacheProtocol, SizeEstimator
from cvcache.cache.entry import CacheEntry, CacheOptions, CacheStats, ReadOutcome
from cvcache.cache.service import CacheService, get_cache_service, reset_cache_service
from cvcache.cache.sizing import JsonSizeEstimator

__all__ = [
    "CacheEntry",
    "CacheOptions",
    "CacheProtocol",
    "CacheService",
    "CacheStats",
    "JsonSizeEstimator",
    "ReadOutcome",
    "SizeEstimator",
    "get_cache_service",
    "reset_cache_service",
]
