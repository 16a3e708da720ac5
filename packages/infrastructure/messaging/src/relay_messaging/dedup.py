"""DeduplicationCache — suppress identical requests within a time window."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import time
from typing import TYPE_CHECKING

from relay_core.ports.background_worker import IBackgroundWorker
from relay_core.ports.dedup import IDeduplicationStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from relay_core.channel import Channel

logger = logging.getLogger("relay.dedup")

DEFAULT_WINDOW_SECONDS = 3600.0
DEFAULT_SWEEP_INTERVAL = 300.0


def dedup_key(channel: Channel | str, recipient: str, body: str) -> str:
    """Deterministic digest of ``(channel, recipient, body)``.

    Subject, metadata and arrival order do not take part in the key.
    """
    value = channel.value if hasattr(channel, "value") else str(channel)
    content = f"{value}:{recipient}:{body}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class DeduplicationCache(IDeduplicationStore):
    """In-memory TTL set of processed request keys.

    A key is a duplicate if it was marked within the last ``window_seconds``.
    Expired entries are purged lazily on lookup and in bulk by
    :meth:`purge_expired` (see :class:`DedupSweeper`). Pure TTL, not LRU.

    Entries live only in this process and are lost on restart. A lookup racing
    a mark for the same key may see either outcome; the map itself is guarded
    by a lock and never left half-updated.
    """

    def __init__(
        self,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Configure the cache.

        Args:
            window_seconds: Dedup window W; marks older than this are absent.
            clock: Monotonic time source in seconds (overridable for tests).
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._window = window_seconds
        self._clock = clock
        self._marks: dict[str, float] = {}
        self._lock = asyncio.Lock()

    @property
    def window_seconds(self) -> float:
        return self._window

    def _expired(self, marked_at: float, now: float) -> bool:
        return now - marked_at > self._window

    async def is_duplicate(self, key: str) -> bool:
        """Return True if *key* was marked inside the window."""
        async with self._lock:
            marked_at = self._marks.get(key)
            if marked_at is None:
                return False
            if self._expired(marked_at, self._clock()):
                del self._marks[key]
                return False
            return True

    async def mark_processed(self, key: str) -> None:
        """Record (or refresh) the mark time for *key*."""
        async with self._lock:
            self._marks[key] = self._clock()

    async def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        async with self._lock:
            now = self._clock()
            stale = [k for k, ts in self._marks.items() if self._expired(ts, now)]
            for k in stale:
                del self._marks[k]
        if stale:
            logger.debug("Purged %d expired dedup entries", len(stale))
        return len(stale)

    def size(self) -> int:
        """Number of entries currently held, expired or not."""
        return len(self._marks)

    def clear(self) -> None:
        """Forget every mark (for testing)."""
        self._marks.clear()


class DedupSweeper(IBackgroundWorker):
    """Background worker that bounds the cache's memory.

    Calls :meth:`DeduplicationCache.purge_expired` every ``interval_seconds``.
    """

    def __init__(
        self,
        cache: DeduplicationCache,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self._cache = cache
        self._interval = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._wake = asyncio.Event()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("DedupSweeper started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("DedupSweeper stopped")

    async def run_once(self) -> int:
        """Execute a single sweep (useful in tests)."""
        return await self._cache.purge_expired()

    async def _run_loop(self) -> None:
        while self._running:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            if not self._running:
                break
            try:
                await self._cache.purge_expired()
            except Exception:
                logger.exception("DedupSweeper error")
