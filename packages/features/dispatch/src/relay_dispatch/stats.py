"""StatsReporter — periodic delivery statistics in the log."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from relay_core.ports.background_worker import IBackgroundWorker

if TYPE_CHECKING:
    from relay_health.registry import HealthRegistry
    from relay_notifications.ports.ledger import IDeliveryLedger

logger = logging.getLogger("relay.stats")

HEARTBEAT_NAME = "stats_reporter"


class StatsReporter(IBackgroundWorker):
    """Logs ledger statistics every ``interval_seconds`` and heartbeats."""

    def __init__(
        self,
        ledger: IDeliveryLedger,
        interval_seconds: float = 30.0,
        health: HealthRegistry | None = None,
    ) -> None:
        self._ledger = ledger
        self._interval = interval_seconds
        self._health = health
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._wake = asyncio.Event()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self._health is not None:
            self._health.heartbeat(HEARTBEAT_NAME)
        self._task = asyncio.create_task(self._run_loop())
        logger.info("StatsReporter started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._health is not None:
            self._health.forget(HEARTBEAT_NAME)
        logger.info("StatsReporter stopped")

    async def run_once(self) -> dict[str, Any]:
        """Log one statistics snapshot and return it."""
        stats = await self._ledger.stats()
        logger.info("Delivery statistics", extra={"stats": stats})
        if self._health is not None:
            self._health.heartbeat(HEARTBEAT_NAME)
        return stats

    async def _run_loop(self) -> None:
        while self._running:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            if not self._running:
                break
            try:
                await self.run_once()
            except Exception:
                logger.exception("StatsReporter error")
