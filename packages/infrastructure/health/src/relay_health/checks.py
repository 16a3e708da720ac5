"""Health checks for relay components."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relay_core.ports.broker import IBrokerClient
    from relay_core.ports.dedup import IDeduplicationStore

logger = logging.getLogger("relay.health")


class BrokerHealthCheck:
    """Up while the broker client reports an open connection and channel."""

    def __init__(self, broker: IBrokerClient) -> None:
        self._broker = broker

    async def __call__(self) -> bool:
        try:
            return bool(await self._broker.health_check())
        except Exception as e:  # noqa: BLE001
            logger.warning("Broker health check raised", extra={"error": str(e)})
            return False


class DedupStoreHealthCheck:
    """Up while the dedup store answers a lookup."""

    PROBE_KEY = "__health__"

    def __init__(self, store: IDeduplicationStore) -> None:
        self._store = store

    async def __call__(self) -> bool:
        try:
            await self._store.is_duplicate(self.PROBE_KEY)
        except Exception as e:  # noqa: BLE001
            logger.warning("Dedup store health check raised", extra={"error": str(e)})
            return False
        return True
