"""
Staleness Reaper
================
Periodic sweep that deactivates collaboration sessions whose owner has gone
silent (no heartbeat) for longer than the staleness threshold.

Covers sessions orphaned by a crashed process or a transport that died
without a close frame. The sweep only ever clears is_active.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ....core.exceptions import SessionStoreError
from ....domain.interfaces.session_store import ISessionStore
from ....domain.models.collaboration import utc_now


class StalenessReaper:
    """
    Background task deactivating stale sessions.

    Configuration:
    - interval_seconds: Time between sweeps (default: 30s)
    - stale_after_seconds: Silence after which a session is stale (default: 300s)
    """

    def __init__(
        self,
        session_store: ISessionStore,
        interval_seconds: float = 30.0,
        stale_after_seconds: float = 300.0,
        logger=None
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if stale_after_seconds <= 0:
            raise ValueError("stale_after_seconds must be positive")

        self.session_store = session_store
        self.interval_seconds = interval_seconds
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.logger = logger

        # Background task
        self._reaper_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        # Statistics
        self.sweeps = 0
        self.failed_sweeps = 0
        self.sessions_deactivated = 0
        self.last_sweep_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._reaper_task is not None and not self._reaper_task.done()

    async def start(self):
        """Start the sweep loop; calling it again while running is a no-op."""
        if self.is_running:
            return

        self._stop_event = asyncio.Event()
        self._reaper_task = asyncio.create_task(self._reaper_loop())

        if self.logger:
            self.logger.info("staleness_reaper.started", {
                "interval_seconds": self.interval_seconds,
                "stale_after_seconds": self.stale_after.total_seconds()
            })

    async def stop(self):
        """Stop the sweep loop and wait for it to exit."""
        if self._stop_event:
            self._stop_event.set()

        if self._reaper_task:
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
            self._reaper_task = None

            if self.logger:
                self.logger.info("staleness_reaper.stopped", self.get_stats())

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Perform one sweep.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Number of sessions deactivated

        Raises:
            SessionStoreError: if the store query fails
        """
        cutoff = (now or utc_now()) - self.stale_after
        count = await self.session_store.deactivate_stale(cutoff)

        self.sweeps += 1
        self.sessions_deactivated += count
        self.last_sweep_at = utc_now()

        if count and self.logger:
            self.logger.info("staleness_reaper.sessions_deactivated", {
                "count": count,
                "cutoff": cutoff.isoformat()
            })
        return count

    async def _reaper_loop(self):
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except SessionStoreError as e:
                self.failed_sweeps += 1
                if self.logger:
                    self.logger.error("staleness_reaper.sweep_failed", {
                        "operation": e.operation,
                        "error": str(e)
                    })
            except Exception as e:
                self.failed_sweeps += 1
                if self.logger:
                    self.logger.error("staleness_reaper.loop_error", {
                        "error": str(e),
                        "error_type": type(e).__name__
                    }, exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "stale_after_seconds": self.stale_after.total_seconds(),
            "sweeps": self.sweeps,
            "failed_sweeps": self.failed_sweeps,
            "sessions_deactivated": self.sessions_deactivated,
            "last_sweep_at": self.last_sweep_at.isoformat() if self.last_sweep_at else None
        }
