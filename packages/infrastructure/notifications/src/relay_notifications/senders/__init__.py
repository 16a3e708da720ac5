from __future__ import annotations

from .simulated import (
    SIMULATION_PROFILES,
    SimulatedChannelSender,
    default_simulated_senders,
)

__all__ = [
    "SIMULATION_PROFILES",
    "SimulatedChannelSender",
    "default_simulated_senders",
]
