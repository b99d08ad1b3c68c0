"""
Detached background refreshes for stale reads.

A stale hit returns the old value right away and hands the refetch to
BackgroundRefresher.schedule(), which runs it as its own asyncio task. Tasks
are kept in a set until they finish so they are not garbage-collected
mid-flight, and a semaphore caps how many refresh fetches run at once.
Refresh failures are logged here and never reach the original caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from cvcache.logging import get_logger, log_context

logger = get_logger(__name__)


class BackgroundRefresher:
    """Runs fire-and-forget refresh coroutines with bounded concurrency."""

    def __init__(self, max_concurrent: int = 4) -> None:
        self.max_concurrent = max_concurrent
        self._tasks: set[asyncio.Task[None]] = set()
        self._semaphore: asyncio.Semaphore | None = None
        self._semaphore_loop: asyncio.AbstractEventLoop | None = None
        self.failures = 0

    @property
    def pending(self) -> int:
        """Number of scheduled refreshes that have not finished."""
        return sum(1 for task in self._tasks if not task.done())

    def schedule(self, key: str, refresh: Callable[[], Awaitable[None]]) -> asyncio.Task[None]:
        """Start a refresh for key without awaiting it.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(key, refresh), name=f"cvcache-refresh:{key}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Scheduled background refresh", key=key, pending=self.pending)
        return task

    async def wait(self) -> None:
        """Wait until every refresh scheduled on the current loop has finished."""
        loop = asyncio.get_running_loop()
        while True:
            pending = [t for t in self._tasks if t.get_loop() is loop and not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _get_semaphore(self) -> asyncio.Semaphore:
        # A singleton cache can outlive an event loop (one loop per test),
        # so the semaphore is rebuilt for each loop.
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            self._semaphore_loop = loop
        return self._semaphore

    async def _run(self, key: str, refresh: Callable[[], Awaitable[None]]) -> None:
        with log_context(cache_key=key, operation="refresh"):
            async with self._get_semaphore():
                try:
                    await refresh()
                except Exception as e:
                    self.failures += 1
                    logger.error(
                        "Background revalidation failed",
                        key=key,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                else:
                    logger.debug("Background revalidation complete", key=key)
