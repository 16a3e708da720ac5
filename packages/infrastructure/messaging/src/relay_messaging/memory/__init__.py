"""In-memory messaging adapters for testing and local runs."""

from __future__ import annotations

from .broker import InMemoryBroker, InMemoryIncomingMessage

__all__ = [
    "InMemoryBroker",
    "InMemoryIncomingMessage",
]
