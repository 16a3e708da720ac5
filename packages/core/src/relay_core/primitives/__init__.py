from __future__ import annotations

from .exceptions import (
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
    "BrokerConnectionLostError",
    "BrokerError",
    "DeliveryFailedError",
    "DuplicateRequestError",
    "InfrastructureError",
    "MalformedMessageError",
    "PublishExhaustedError",
    "RelayError",
    "UnsupportedChannelError",
    "ValidationError",
]
