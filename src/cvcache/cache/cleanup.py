"""
Periodic sweep of fully-expired entries.

The scheduler runs a sweep callable on a daemon thread every interval until
stopped. It does not need an event loop, so it can start as soon as the cache
is constructed.
"""

from __future__ import annotations

import threading
from typing import Callable

from cvcache.exceptions import ConfigurationError
from cvcache.logging import get_logger

logger = get_logger(__name__)


class CleanupScheduler:
    """Invoke ``sweep`` every ``interval_seconds`` on a background thread."""

    def __init__(self, sweep: Callable[[], int], interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ConfigurationError(
                "Cleanup interval must be positive",
                {"interval_seconds": interval_seconds},
            )
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sweep thread (no-op when already running)."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="cvcache-cleanup",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Cleanup scheduler started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: float | None = 1.0) -> None:
        """Signal the thread to exit and wait briefly for it."""
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.debug("Cleanup scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self._sweep()
            except Exception:
                logger.exception("Cleanup sweep failed")
