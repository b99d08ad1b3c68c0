"""
Structured logging for the CV data cache.

Provides:
- Context variables for cache_key and operation (using contextvars)
- ContextLogger wrapper that attaches context and keyword fields to log calls
- setup_logging() that installs a rich console handler
- Context manager log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler

# Context variables for structured logging. asyncio tasks copy the current
# context when created, so background refreshes inherit these values.
_cache_key_var: ContextVar[str | None] = ContextVar("cache_key", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def get_cache_key() -> str | None:
    """Get the cache key being operated on from context."""
    return _cache_key_var.get()


def get_operation() -> str | None:
    """Get the current cache operation name from context."""
    return _operation_var.get()


@contextmanager
def log_context(
    cache_key: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        cache_key: Cache key to set in context.
        operation: Operation name (get, refresh, warm, cleanup) to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    old_cache_key = _cache_key_var.get()
    old_operation = _operation_var.get()

    try:
        if cache_key is not None:
            _cache_key_var.set(cache_key)
        if operation is not None:
            _operation_var.set(operation)
        yield
    finally:
        _cache_key_var.set(old_cache_key)
        _operation_var.set(old_operation)


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones become
    structured fields: ``logger.debug("Cache hit", key=key, age_ms=age)``.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        if not self._logger.isEnabledFor(level):
            return

        extra = kwargs.pop("extra", {})

        cache_key = get_cache_key()
        operation = get_operation()

        if cache_key:
            extra.setdefault("cache_key", cache_key)
        if operation:
            extra.setdefault("operation", operation)

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(log_level: str = "INFO") -> None:
    """Set up the rich console handler for the cvcache namespace.

    Safe to call again: existing handlers are replaced, so the level of the
    most recent call wins.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    global _setup_done

    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger("cvcache")
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    rich_handler = RichHandler(
        console=get_console(),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    rich_handler.setLevel(level)
    root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    # tenacity and asyncio log retry/task noise at DEBUG
    for noisy_logger in ["tenacity", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    if not _setup_done:
        setup_logging()

    if not name.startswith("cvcache"):
        name = f"cvcache.{name}"

    logger = logging.getLogger(name)
    return ContextLogger(logger)
