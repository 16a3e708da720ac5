"""InMemoryDeliveryLedger — per-message delivery lifecycle, process-local."""

from __future__ import annotations

import asyncio
import builtins
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from relay_core.channel import Channel

from .delivery import DeliveryRecord, DeliveryStatus
from .ports.ledger import IDeliveryLedger

logger = logging.getLogger("relay.ledger")


class InMemoryDeliveryLedger(IDeliveryLedger):
    """
    Dict-backed ledger guarded by an ``asyncio.Lock``.

    Records are frozen dataclasses, so whatever :meth:`get` and :meth:`list`
    hand out cannot change ledger state. Terminal updates are last-write-wins:
    a conflicting terminal status replaces the previous one and logs a warning.
    """

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}
        self._lock = asyncio.Lock()

    async def record(
        self,
        message_id: str,
        channel: Channel,
        recipient: str,
        subject: str | None,
        body: str,
        trace_id: str,
    ) -> DeliveryRecord:
        async with self._lock:
            existing = self._records.get(message_id)
            if existing is not None:
                return existing
            entry = DeliveryRecord(
                message_id=message_id,
                channel=channel,
                recipient=recipient,
                subject=subject,
                body=body,
                trace_id=trace_id,
            )
            self._records[message_id] = entry
            return entry

    async def update_status(
        self,
        message_id: str,
        status: DeliveryStatus,
        error: str | None = None,
    ) -> DeliveryRecord | None:
        if not status.is_terminal:
            raise ValueError("update_status only accepts terminal statuses")

        async with self._lock:
            current = self._records.get(message_id)
            if current is None:
                logger.warning(
                    "Status update for unknown message",
                    extra={"message_id": message_id, "status": status.value},
                )
                return None
            if current.status is status:
                return current
            if current.status.is_terminal:
                logger.warning(
                    "Conflicting terminal status; keeping the latest",
                    extra={
                        "trace_id": current.trace_id,
                        "message_id": message_id,
                        "previous": current.status.value,
                        "status": status.value,
                    },
                )

            now = datetime.now(timezone.utc)
            updated = replace(
                current,
                status=status,
                updated_at=now,
                delivered_at=now if status is DeliveryStatus.DELIVERED else current.delivered_at,
                last_error=error if status is DeliveryStatus.FAILED else current.last_error,
            )
            self._records[message_id] = updated
            return updated

    async def discard(self, message_id: str) -> None:
        async with self._lock:
            self._records.pop(message_id, None)

    async def get(self, message_id: str) -> DeliveryRecord | None:
        async with self._lock:
            return self._records.get(message_id)

    async def list(
        self,
        channel: Channel | None = None,
        status: DeliveryStatus | None = None,
    ) -> builtins.list[DeliveryRecord]:
        async with self._lock:
            records = builtins.list(self._records.values())
        return [
            r
            for r in records
            if (channel is None or r.channel is channel)
            and (status is None or r.status is status)
        ]

    async def stats(self) -> dict[str, Any]:
        async with self._lock:
            records = builtins.list(self._records.values())

        by_status = {s: 0 for s in DeliveryStatus}
        by_channel: dict[str, dict[str, int]] = {
            c.value: {"total": 0, **{s.value: 0 for s in DeliveryStatus}} for c in Channel
        }
        for r in records:
            by_status[r.status] += 1
            bucket = by_channel[r.channel.value]
            bucket["total"] += 1
            bucket[r.status.value] += 1

        return {
            "total": len(records),
            "pending": by_status[DeliveryStatus.PENDING],
            "delivered": by_status[DeliveryStatus.DELIVERED],
            "failed": by_status[DeliveryStatus.FAILED],
            "by_channel": by_channel,
        }

    def clear(self) -> None:
        """Forget every record (for testing)."""
        self._records.clear()
