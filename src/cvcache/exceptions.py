"""
Exception hierarchy for the CV data cache.

All exceptions inherit from CacheError, which carries optional structured
context for logging. Errors raised by caller-supplied fetchers are never
wrapped in these types; they propagate to the caller as they were raised.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when cache configuration is inconsistent.

    Examples:
        - Default stale TTL shorter than the default TTL
        - Non-positive cleanup interval passed to the scheduler
    """

    pass


class InvalidCacheOptionsError(CacheError):
    """Raised when per-call cache options are invalid.

    Context should include:
        - key: The cache key the options were supplied for (when known)
        - ttl: The effective TTL in milliseconds
        - stale_ttl: The effective stale TTL in milliseconds
    """

    pass


class SizeEstimationError(CacheError):
    """Raised when a value cannot be measured for the size budget.

    Context should include:
        - value_type: The type name of the offending value
    """

    pass
