"""Ports — protocols implemented by infrastructure packages."""

from __future__ import annotations

from .background_worker import IBackgroundWorker
from .broker import IBrokerClient, IIncomingMessage
from .dedup import IDeduplicationStore

__all__ = [
    "IBackgroundWorker",
    "IBrokerClient",
    "IDeduplicationStore",
    "IIncomingMessage",
]
