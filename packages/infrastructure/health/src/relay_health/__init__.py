"""Health checks and registry for the notification relay."""

from __future__ import annotations

from .checks import BrokerHealthCheck, DedupStoreHealthCheck
from .registry import HealthRegistry

__all__ = [
    "BrokerHealthCheck",
    "DedupStoreHealthCheck",
    "HealthRegistry",
]
