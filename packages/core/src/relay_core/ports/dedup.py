"""IDeduplicationStore - Protocol for time-bounded request deduplication."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IDeduplicationStore(Protocol):
    """
    Content-addressed, time-bounded membership test.

    A key counts as a duplicate when it was marked within the store's window.
    The in-memory implementation lives in ``relay_messaging.dedup``; a durable
    backend only needs these two methods.
    """

    async def is_duplicate(self, key: str) -> bool:
        """Return True if *key* was marked inside the window."""
        ...

    async def mark_processed(self, key: str) -> None:
        """Record that *key* has been accepted."""
        ...
