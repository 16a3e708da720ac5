"""MessageEnvelope — the canonical in-flight notification record."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from relay_core.channel import Channel
from relay_core.correlation import ensure_trace_id


class MessageEnvelope(BaseModel):
    """Immutable wrapper for one notification on the wire.

    Python names are snake_case; the JSON wire keys (aliases) are the ones the
    queues carry: ``to``, ``traceId``, ``timestamp``, ``retryCount``.
    ``retry_count`` only moves forward through :meth:`with_retry`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    channel: Channel
    recipient: str = Field(..., alias="to", min_length=1)
    subject: str | None = None
    body: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    trace_id: str = Field(..., alias="traceId", min_length=1)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="timestamp"
    )
    retry_count: int = Field(default=0, ge=0, alias="retryCount")

    @classmethod
    def create(
        cls,
        channel: Channel | str,
        recipient: str,
        body: str,
        *,
        subject: str | None = None,
        metadata: dict[str, Any] | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        """Allocate a fresh envelope: new id, ``retry_count=0``, ingress time now."""
        return cls(
            channel=Channel.parse(channel),
            recipient=recipient,
            subject=subject,
            body=body,
            metadata=dict(metadata or {}),
            trace_id=ensure_trace_id(trace_id),
        )

    def with_retry(self, retry_count: int | None = None) -> MessageEnvelope:
        """Return a copy with ``retry_count`` advanced by one, or to *retry_count*.

        The count never moves backwards.
        """
        target = self.retry_count + 1 if retry_count is None else retry_count
        if target < self.retry_count:
            raise ValueError("retry_count cannot decrease")
        return self.model_copy(update={"retry_count": target})

    def to_wire(self) -> dict[str, Any]:
        """JSON-compatible dict using the wire key names."""
        return self.model_dump(mode="json", by_alias=True)
