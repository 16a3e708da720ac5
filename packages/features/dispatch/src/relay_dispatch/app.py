"""NotificationRelay — builds the pipeline from settings and owns its lifecycle."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any

from relay_health import BrokerHealthCheck, DedupStoreHealthCheck, HealthRegistry
from relay_messaging.dead_letter import DeadLetterHandler
from relay_messaging.dedup import DedupSweeper, DeduplicationCache
from relay_messaging.memory import InMemoryBroker
from relay_messaging.retry import RetryPolicy
from relay_notifications.dispatcher import ChannelDispatcher
from relay_notifications.ledger import InMemoryDeliveryLedger
from relay_notifications.senders import default_simulated_senders

from .router import MessageRouter
from .settings import RelaySettings
from .stats import StatsReporter
from .worker import DeliveryWorker

if TYPE_CHECKING:
    from collections.abc import Iterable

    from relay_core.ports.broker import IBrokerClient
    from relay_notifications.ports.ledger import IDeliveryLedger
    from relay_notifications.ports.sender import IChannelSender

    from .schemas import MessageRequest, SubmitReceipt

logger = logging.getLogger("relay.app")


def build_broker(settings: RelaySettings) -> IBrokerClient:
    """The broker client selected by ``settings.broker``."""
    if settings.broker == "memory":
        return InMemoryBroker(prefetch_count=settings.prefetch_count)

    from relay_messaging.rabbitmq import RabbitMQBrokerClient

    return RabbitMQBrokerClient(
        settings.broker_url,
        prefetch_count=settings.prefetch_count,
        reconnect_delay=settings.reconnect_delay,
    )


class NotificationRelay:
    """The assembled relay: router, worker and their shared stores.

    Every collaborator can be passed in; anything omitted is built from
    *settings*. ``start()`` raises ``BrokerConnectionLostError`` when the
    initial broker connection fails.
    """

    def __init__(
        self,
        settings: RelaySettings | None = None,
        *,
        broker: IBrokerClient | None = None,
        senders: Iterable[IChannelSender] | None = None,
        ledger: IDeliveryLedger | None = None,
        dedup: DeduplicationCache | None = None,
        dead_letter: DeadLetterHandler | None = None,
        consume: bool = True,
    ) -> None:
        self.settings = settings or RelaySettings()
        s = self.settings

        self.broker = broker or build_broker(s)
        self.ledger = ledger or InMemoryDeliveryLedger()
        self.dedup = dedup or DeduplicationCache(window_seconds=s.dedup_window_seconds)
        if senders is None:
            rng = random.Random(s.simulation_seed) if s.simulation_seed is not None else None
            senders = default_simulated_senders(rng)
        self.dispatcher = ChannelDispatcher(senders)

        self.router = MessageRouter(
            self.broker,
            self.dedup,
            self.ledger,
            queues=s.queues,
            retry_policy=RetryPolicy(
                max_attempts=s.publish_max_attempts, delay=s.publish_retry_delay
            ),
        )
        self.worker = DeliveryWorker(
            self.broker,
            self.dispatcher,
            self.ledger,
            queues=s.queues,
            retry_policy=RetryPolicy(
                max_attempts=s.delivery_max_retries, delay=s.delivery_retry_delay
            ),
            dead_letter=dead_letter,
        )
        self.consume = consume

        self.health = HealthRegistry(
            service_name=s.service_name,
            heartbeat_timeout_seconds=max(60.0, 3 * s.stats_interval),
        )
        self.health.register("broker", BrokerHealthCheck(self.broker))
        self.health.register("dedup_cache", DedupStoreHealthCheck(self.dedup))
        if consume:
            self.health.register("delivery_worker", lambda: self.worker.is_running)

        self.sweeper = DedupSweeper(self.dedup, interval_seconds=s.dedup_sweep_interval)
        self.stats_reporter = StatsReporter(
            self.ledger, interval_seconds=s.stats_interval, health=self.health
        )
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        logger.info(
            "Starting notification relay",
            extra={"broker": self.settings.broker, "environment": self.settings.environment},
        )
        await self.broker.connect()
        await self.router.prepare()
        if self.consume:
            await self.worker.start()
        await self.sweeper.start()
        await self.stats_reporter.start()
        self._started = True
        logger.info("Notification relay started")

    async def stop(self) -> None:
        """Stop workers, drop pending requeues, then close the broker."""
        if not self._started:
            return
        self._started = False
        await self.stats_reporter.stop()
        await self.sweeper.stop()
        await self.worker.stop()
        await self.broker.close(timeout=self.settings.shutdown_timeout)
        leftover = await self.worker.cancel_requeues()
        if leftover:
            logger.warning("Cancelled %d requeue(s) scheduled during shutdown", leftover)
        logger.info("Notification relay stopped")

    async def __aenter__(self) -> NotificationRelay:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def submit(self, request: MessageRequest, trace_id: str | None = None) -> SubmitReceipt:
        return await self.router.submit(request, trace_id)

    async def stats(self) -> dict[str, Any]:
        return await self.ledger.stats()
