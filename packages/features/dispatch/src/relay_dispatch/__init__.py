"""Notification relay: ingress router, delivery worker and their assembly."""

from __future__ import annotations

from .app import NotificationRelay, build_broker
from .router import MessageRouter
from .schemas import MessageRequest, SubmitReceipt
from .settings import RelaySettings
from .stats import StatsReporter
from .worker import DeliveryWorker

__all__ = [
    "DeliveryWorker",
    "MessageRequest",
    "MessageRouter",
    "NotificationRelay",
    "RelaySettings",
    "StatsReporter",
    "SubmitReceipt",
    "build_broker",
]
