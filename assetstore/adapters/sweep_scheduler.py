"""
In-Process Sweep Scheduler.

Runs a background thread that triggers the retention sweeper at a fixed
interval. Deployments with an external cron use `assetstore sweep`
instead and leave this disabled.
"""

from __future__ import annotations

import logging
import threading

from assetstore.components.retention import (
    RetentionSweeper,
    SweepInProgressError,
    SweepResult,
)

logger = logging.getLogger(__name__)


class SweepScheduler:
    """
    Background scheduler for retention sweeps.

    The first sweep runs one full interval after start().
    """

    def __init__(
        self,
        sweeper: RetentionSweeper,
        interval_seconds: float = 86400.0,
    ) -> None:
        self._sweeper = sweeper
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        """Start the background scheduler."""
        if self._running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="retention-sweep", daemon=True)
        self._thread.start()
        self._running = True
        logger.info("Sweep scheduler started (interval: %.1fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the scheduler gracefully. A sweep already running is not interrupted."""
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._running = False
        logger.info("Sweep scheduler stopped")

    def trigger_now(self) -> SweepResult:
        return self._sweeper.sweep()

    @property
    def is_running(self) -> bool:
        return self._running

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self._interval):
            try:
                self._sweeper.sweep()
            except SweepInProgressError:
                logger.warning("Skipping scheduled sweep; previous sweep still running")
            except Exception:
                logger.exception("Error in retention sweep loop")
