"""Delivery ledger port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from relay_core.channel import Channel

    from ..delivery import DeliveryRecord, DeliveryStatus


@runtime_checkable
class IDeliveryLedger(Protocol):
    """Protocol for tracking each message's delivery lifecycle."""

    async def record(
        self,
        message_id: str,
        channel: Channel,
        recipient: str,
        subject: str | None,
        body: str,
        trace_id: str,
    ) -> DeliveryRecord:
        """Create a pending entry (existing entries are left untouched)."""
        ...

    async def update_status(
        self,
        message_id: str,
        status: DeliveryStatus,
        error: str | None = None,
    ) -> DeliveryRecord | None:
        """Move an entry to a terminal status."""
        ...

    async def discard(self, message_id: str) -> None:
        """Forget an entry."""
        ...

    async def get(self, message_id: str) -> DeliveryRecord | None:
        """Return the entry for *message_id*, if any."""
        ...

    async def list(
        self,
        channel: Channel | None = None,
        status: DeliveryStatus | None = None,
    ) -> list[DeliveryRecord]:
        """Return entries, optionally filtered."""
        ...

    async def stats(self) -> dict[str, Any]:
        """Return counts by status and by channel."""
        ...
