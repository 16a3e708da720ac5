"""Channel senders, dispatcher and delivery ledger for the notification relay."""

from __future__ import annotations

from .delivery import DeliveryRecord, DeliveryResult, DeliveryStatus
from .dispatcher import ChannelDispatcher
from .ledger import InMemoryDeliveryLedger
from .memory import FakeChannelSender
from .ports import IChannelSender, IDeliveryLedger
from .senders import SimulatedChannelSender, default_simulated_senders

__all__ = [
    "ChannelDispatcher",
    "DeliveryRecord",
    "DeliveryResult",
    "DeliveryStatus",
    "FakeChannelSender",
    "IChannelSender",
    "IDeliveryLedger",
    "InMemoryDeliveryLedger",
    "SimulatedChannelSender",
    "default_simulated_senders",
]
