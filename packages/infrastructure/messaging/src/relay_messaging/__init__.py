"""Message transport for notify-relay — envelope, dedup, retry, RabbitMQ and in-memory."""

from __future__ import annotations

from .dead_letter import DeadLetterHandler
from .dedup import DedupSweeper, DeduplicationCache, dedup_key
from .envelope import MessageEnvelope
from .memory import InMemoryBroker, InMemoryIncomingMessage
from .retry import RetryPolicy
from .serialization import CONTENT_TYPE, EnvelopeSerializer

__all__ = [
    "CONTENT_TYPE",
    "DeadLetterHandler",
    "DedupSweeper",
    "DeduplicationCache",
    "EnvelopeSerializer",
    "InMemoryBroker",
    "InMemoryIncomingMessage",
    "MessageEnvelope",
    "RetryPolicy",
    "dedup_key",
]
