"""RabbitMQ transport adapter (aio-pika)."""

from __future__ import annotations

from .client import RabbitMQBrokerClient

__all__ = [
    "RabbitMQBrokerClient",
]
