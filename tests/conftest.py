"""
Pytest configuration and fixtures for cache tests.
"""

from __future__ import annotations

from typing import Generator

import pytest

from cvcache.cache.service import CacheService, reset_cache_service
from cvcache.config import Settings, clear_settings_cache
from cvcache.retry import RetryPolicy


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, ms: float) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Provide a retry policy without backoff delays."""
    return RetryPolicy(max_attempts=3, initial_delay_ms=0, max_delay_ms=0)


@pytest.fixture
def cache_settings() -> Settings:
    """Provide settings independent of the environment and .env files."""
    return Settings(_env_file=None)


@pytest.fixture
def cache(
    cache_settings: Settings,
    clock: FakeClock,
    fast_retry: RetryPolicy,
) -> Generator[CacheService, None, None]:
    """Provide a fresh cache driven by the fake clock.

    The periodic sweep is not started; tests call cleanup() directly.
    """
    service = CacheService(
        cache_settings,
        retry_policy=fast_retry,
        now=clock,
        start_cleanup=False,
    )
    yield service
    service.destroy()


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Automatically reset cached settings and the shared cache."""
    clear_settings_cache()
    reset_cache_service()
    yield
    reset_cache_service()
    clear_settings_cache()
