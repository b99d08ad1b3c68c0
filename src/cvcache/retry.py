"""
Retry-with-backoff invoker for fetchers.

Every fetcher call made by the cache goes through with_retry(), which runs
the callable under a tenacity AsyncRetrying loop configured from a
RetryPolicy. Errors are never wrapped: a non-retryable error propagates
immediately and exhaustion re-raises the last error as it was raised.
"""

from __future__ import annotations

import asyncio
import re
import socket
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cvcache.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_NETWORK_ERROR_PATTERNS = (
    re.compile(r"network", re.IGNORECASE),
    re.compile(r"timeout", re.IGNORECASE),
    re.compile(r"timed out", re.IGNORECASE),
    re.compile(r"ECONNREFUSED"),
    re.compile(r"ENOTFOUND"),
    re.compile(r"ETIMEDOUT"),
    re.compile(r"fetch failed", re.IGNORECASE),
)


def _always_retry(error: BaseException) -> bool:
    return True


def _noop_on_retry(error: BaseException, attempt: int) -> None:
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration for a fetch.

    The delay before retry n is min(initial_delay_ms * backoff_multiplier**(n-1),
    max_delay_ms).
    """

    max_attempts: int = 3
    initial_delay_ms: int = 1_000
    max_delay_ms: int = 10_000
    backoff_multiplier: float = 2.0
    is_retryable: Callable[[BaseException], bool] = field(default=_always_retry)
    on_retry: Callable[[BaseException, int], None] = field(default=_noop_on_retry)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay in milliseconds before retrying after the given failed attempt."""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay_ms)


def is_network_error(error: BaseException) -> bool:
    """Check if an error looks like a transient network failure.

    Usable as RetryPolicy.is_retryable to only retry connectivity problems.
    """
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError, socket.gaierror)):
        return True
    message = str(error)
    return any(pattern.search(message) for pattern in _NETWORK_ERROR_PATTERNS)


def _build_retrying(policy: RetryPolicy) -> AsyncRetrying:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number
        logger.debug(
            "Retrying after error",
            attempt=attempt,
            max_attempts=policy.max_attempts,
            delay_ms=policy.delay_for(attempt),
            error=str(error),
        )
        if error is not None:
            policy.on_retry(error, attempt + 1)

    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.initial_delay_ms / 1000.0,
            exp_base=policy.backoff_multiplier,
            max=policy.max_delay_ms / 1000.0,
        ),
        # Cancellation is a BaseException and must never be retried
        retry=retry_if_exception_type(Exception) & retry_if_exception(policy.is_retryable),
        before_sleep=before_sleep,
        reraise=True,
    )


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """Execute an async callable with retry logic and exponential backoff.

    Args:
        fn: Zero-argument coroutine function to execute.
        policy: Retry configuration. Defaults to RetryPolicy().

    Returns:
        The value produced by fn.

    Raises:
        Exception: The last error raised by fn, once retries are exhausted or
            as soon as an error is not retryable.
    """
    policy = policy or RetryPolicy()
    retrying = _build_retrying(policy)

    try:
        return await retrying(fn)
    except Exception as e:
        if not policy.is_retryable(e):
            logger.debug("Error is not retryable, raising immediately", error=str(e))
        else:
            logger.warning(
                "All retry attempts exhausted",
                attempts=policy.max_attempts,
                error=str(e),
            )
        raise
