"""Delivery outcome and ledger record types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from relay_core.channel import Channel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryStatus(str, Enum):
    """Lifecycle of one message: pending → delivered | failed, nothing after."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DeliveryStatus.PENDING


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one channel sender invocation."""

    success: bool
    channel: Channel
    message_id: str
    error: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def ok(cls, channel: Channel, message_id: str) -> DeliveryResult:
        """Create a successful result."""
        return cls(success=True, channel=channel, message_id=message_id)

    @classmethod
    def failed(cls, channel: Channel, message_id: str, error: str) -> DeliveryResult:
        """Create a failed result carrying the channel-specific reason."""
        return cls(success=False, channel=channel, message_id=message_id, error=error)


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable snapshot of a message's delivery lifecycle.

    ``delivered_at`` is only set on the transition to delivered;
    ``last_error`` on a failure.
    """

    message_id: str
    channel: Channel
    recipient: str
    body: str
    trace_id: str
    subject: str | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    delivered_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.message_id,
            "channel": self.channel.value,
            "to": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "status": self.status.value,
            "traceId": self.trace_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "deliveredAt": self.delivered_at.isoformat() if self.delivered_at else None,
            "error": self.last_error,
        }
