"""Periodic removal of abandoned progress sessions."""

import asyncio
import logging
import os

from services.progress.progress_tracker import ProgressTracker

LOGGER = logging.getLogger(__name__)

SESSION_MAX_AGE = float(os.getenv("SESSION_MAX_AGE", "3600"))


class SessionSweeper:
    """Delete finished sessions older than the configured age."""

    def __init__(self, tracker: ProgressTracker, max_age_seconds: float = SESSION_MAX_AGE) -> None:
        """
        Args:
            tracker: Shared progress tracker.
            max_age_seconds: Age threshold in seconds, measured from `start_time`.
        """
        self._tracker = tracker
        self.max_age_seconds = max_age_seconds

    def prune_stale_sessions(self) -> int:
        """Drop stale sessions and return the count removed."""
        removed = self._tracker.prune_stale(self.max_age_seconds)
        if removed:
            LOGGER.info("Removed %d stale progress session(s)", removed)
        return removed

    async def run_periodic_cleanup(self, interval_seconds: float = 300) -> None:
        """
        Repeatedly prune stale sessions at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between sweeps.
        """
        while True:
            try:
                self.prune_stale_sessions()
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception:
                LOGGER.exception("Session sweep failed")
                await asyncio.sleep(interval_seconds)
