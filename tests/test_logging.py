"""
Tests for structured logging and the exception hierarchy.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Generator
from unittest.mock import patch

import pytest

from cvcache.cache import CacheService
from cvcache.config import clear_settings_cache
from cvcache.exceptions import CacheError, InvalidCacheOptionsError
from cvcache.logging import (
    ContextLogger,
    get_cache_key,
    get_logger,
    get_operation,
    log_context,
    setup_logging,
)


class RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def recorded() -> Generator[tuple[ContextLogger, RecordingHandler], None, None]:
    """Provide a logger under the cvcache namespace with a recording handler."""
    logger = get_logger("tests.recorded")
    handler = RecordingHandler()
    underlying = logging.getLogger(logger.name)
    underlying.addHandler(handler)
    underlying.setLevel(logging.DEBUG)
    yield logger, handler
    underlying.removeHandler(handler)


class TestLogContext:
    """Tests for context variables."""

    def test_sets_and_restores(self) -> None:
        assert get_cache_key() is None

        with log_context(cache_key="profile", operation="get"):
            assert get_cache_key() == "profile"
            assert get_operation() == "get"

            with log_context(operation="refresh"):
                assert get_cache_key() == "profile"
                assert get_operation() == "refresh"

            assert get_operation() == "get"

        assert get_cache_key() is None
        assert get_operation() is None

    @pytest.mark.asyncio
    async def test_context_follows_tasks(self) -> None:
        """Test that tasks created inside a context inherit it."""

        async def read_key() -> str | None:
            return get_cache_key()

        with log_context(cache_key="skills"):
            task = asyncio.create_task(read_key())

        assert await task == "skills"


class TestContextLogger:
    """Tests for ContextLogger."""

    def test_namespaces_logger(self) -> None:
        assert get_logger("outside").name == "cvcache.outside"
        assert get_logger("cvcache.cache.service").name == "cvcache.cache.service"

    def test_structured_fields_become_extra(
        self, recorded: tuple[ContextLogger, RecordingHandler]
    ) -> None:
        logger, handler = recorded

        with log_context(cache_key="profile", operation="get"):
            logger.info("Cache hit", age_ms=12)

        record = handler.records[-1]
        assert record.getMessage() == "Cache hit"
        assert record.extra == {"cache_key": "profile", "operation": "get", "age_ms": 12}

    def test_exception_includes_traceback(
        self, recorded: tuple[ContextLogger, RecordingHandler]
    ) -> None:
        logger, handler = recorded

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Refresh failed")

        assert handler.records[-1].exc_info is not None


@pytest.fixture
def restore_log_level() -> Generator[None, None, None]:
    yield
    setup_logging("INFO")


@pytest.mark.usefixtures("restore_log_level")
class TestSetupLogging:
    """Tests for log level configuration."""

    def test_sets_namespace_level(self) -> None:
        setup_logging("WARNING")

        namespace = logging.getLogger("cvcache")
        assert namespace.level == logging.WARNING
        assert len(namespace.handlers) == 1
        assert namespace.propagate is False

    def test_cache_service_applies_log_level_from_env(self) -> None:
        """Test that LOG_LEVEL=DEBUG reaches the cvcache logger."""
        with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=False):
            clear_settings_cache()
            service = CacheService(start_cleanup=False)

        try:
            assert logging.getLogger("cvcache").level == logging.DEBUG
            assert logging.getLogger("cvcache.cache.service").isEnabledFor(logging.DEBUG)
        finally:
            service.destroy()


class TestCacheError:
    """Tests for the exception hierarchy."""

    def test_str_includes_context(self) -> None:
        error = InvalidCacheOptionsError("stale_ttl must be >= ttl", {"ttl": 10, "stale_ttl": 5})

        assert isinstance(error, CacheError)
        assert str(error) == "stale_ttl must be >= ttl (ttl=10, stale_ttl=5)"
        assert "InvalidCacheOptionsError" in repr(error)

    def test_str_without_context(self) -> None:
        assert str(CacheError("plain")) == "plain"
