"""Port definitions for notification infrastructure."""

from __future__ import annotations

from .ledger import IDeliveryLedger
from .sender import IChannelSender

__all__ = [
    "IChannelSender",
    "IDeliveryLedger",
]
