"""Core primitives for notify-relay — channels, trace IDs, errors and ports."""

from __future__ import annotations

from .channel import Channel
from .correlation import (
    TRACE_ID_HEADER,
    ensure_trace_id,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
)
from .primitives.exceptions import (
    BrokerConnectionLostError,
    BrokerError,
    DeliveryFailedError,
    DuplicateRequestError,
    InfrastructureError,
    MalformedMessageError,
    PublishExhaustedError,
    RelayError,
    UnsupportedChannelError,
    ValidationError,
)

__all__ = [
    "TRACE_ID_HEADER",
    "BrokerConnectionLostError",
    "BrokerError",
    "Channel",
    "DeliveryFailedError",
    "DuplicateRequestError",
    "InfrastructureError",
    "MalformedMessageError",
    "PublishExhaustedError",
    "RelayError",
    "UnsupportedChannelError",
    "ValidationError",
    "ensure_trace_id",
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
]
