"""InMemoryBroker — IBrokerClient with per-queue FIFO and manual acks, for tests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from relay_core.ports.broker import IBrokerClient
from relay_core.primitives.exceptions import BrokerConnectionLostError, BrokerError

from ..serialization import EnvelopeSerializer

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from ..envelope import MessageEnvelope

logger = logging.getLogger("relay.broker.memory")


class InMemoryIncomingMessage:
    """A delivery from :class:`InMemoryBroker`; mirrors aio-pika's settle API.

    Settling twice raises ``RuntimeError`` like aio-pika's
    ``MessageProcessError``.
    """

    def __init__(
        self,
        broker: InMemoryBroker,
        queue_name: str,
        body: bytes,
        delivery_tag: int,
        redelivered: bool,
    ) -> None:
        self._broker = broker
        self.queue_name = queue_name
        self.body = body
        self._delivery_tag = delivery_tag
        self.redelivered = redelivered
        self.processed = False
        self.outcome: str | None = None

    @property
    def delivery_tag(self) -> int:
        return self._delivery_tag

    def _settle(self, outcome: str, requeue: bool) -> None:
        if self.processed:
            raise RuntimeError("Message already processed")
        self.processed = True
        self.outcome = outcome
        self._broker._settled(self, requeue=requeue)

    async def ack(self, multiple: bool = False) -> None:  # noqa: ARG002
        self._settle("ack", requeue=False)

    async def nack(self, multiple: bool = False, requeue: bool = True) -> None:  # noqa: ARG002
        self._settle("nack", requeue=requeue)

    async def reject(self, requeue: bool = False) -> None:
        self._settle("reject", requeue=requeue)


class InMemoryBroker(IBrokerClient):
    """In-memory broker honouring the same contract as the RabbitMQ client.

    - each queue is FIFO; a requeued message goes back to the tail;
    - at most ``prefetch_count`` unsettled deliveries per queue;
    - ``reject_next_publishes(n)`` makes the next *n* publishes return False;
    - ``simulate_connection_loss()`` makes publish raise
      ``BrokerConnectionLostError`` and pauses dispatch until
      ``restore_connection()``.

    Settled messages are kept in ``acked`` and ``dead_lettered`` for assertions.
    """

    def __init__(
        self,
        *,
        prefetch_count: int = 1,
        serializer: EnvelopeSerializer | None = None,
    ) -> None:
        if prefetch_count < 1:
            raise ValueError("prefetch_count must be >= 1")
        self._prefetch_count = prefetch_count
        self._serializer = serializer or EnvelopeSerializer()
        self._queues: dict[str, deque[tuple[bytes, bool]]] = {}
        self._durable: dict[str, bool] = {}
        self._handlers: dict[
            str, Callable[[InMemoryIncomingMessage], Coroutine[Any, Any, None]]
        ] = {}
        self._unsettled: dict[str, int] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._next_tag = 0
        self._connected = False
        self._closing = False
        self._reject_publishes = 0

        self.published: list[tuple[str, MessageEnvelope]] = []
        self.acked: list[InMemoryIncomingMessage] = []
        self.dead_lettered: list[InMemoryIncomingMessage] = []

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        self._closing = False
        self._pump_all()

    async def close(self, timeout: float = 10.0) -> None:
        self._closing = True
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            _done, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._connected = False

    async def health_check(self) -> bool:
        return self._connected

    def simulate_connection_loss(self) -> None:
        self._connected = False

    def restore_connection(self) -> None:
        self._connected = True
        self._pump_all()

    def reject_next_publishes(self, count: int) -> None:
        """Make the next *count* publishes return False (buffer full)."""
        self._reject_publishes = count

    # ── Queues ───────────────────────────────────────────────────────

    async def declare_queue(self, name: str, durable: bool = True) -> None:
        self._queues.setdefault(name, deque())
        self._durable[name] = durable
        self._unsettled.setdefault(name, 0)

    def depth(self, name: str) -> int:
        """Messages waiting in *name*, excluding unsettled deliveries."""
        return len(self._queues.get(name, ()))

    def unsettled(self, name: str) -> int:
        return self._unsettled.get(name, 0)

    async def publish(self, queue_name: str, envelope: MessageEnvelope) -> bool:
        if not self._connected:
            raise BrokerConnectionLostError("In-memory broker is disconnected")
        if self._reject_publishes > 0:
            self._reject_publishes -= 1
            return False
        self.publish_raw(queue_name, self._serializer.serialize(envelope))
        self.published.append((queue_name, envelope))
        return True

    def publish_raw(self, queue_name: str, body: bytes) -> None:
        """Enqueue raw bytes (e.g. a malformed payload) bypassing the serializer."""
        if queue_name not in self._queues:
            raise BrokerError(f"Queue {queue_name!r} is not declared")
        self._queues[queue_name].append((body, False))
        self._pump(queue_name)

    # ── Consume ──────────────────────────────────────────────────────

    async def consume(
        self,
        queue_name: str,
        handler: Callable[[InMemoryIncomingMessage], Coroutine[Any, Any, None]],
    ) -> None:
        if queue_name not in self._queues:
            await self.declare_queue(queue_name)
        self._handlers[queue_name] = handler
        self._pump(queue_name)

    def _pump_all(self) -> None:
        for name in list(self._queues):
            self._pump(name)

    def _pump(self, name: str) -> None:
        handler = self._handlers.get(name)
        queue = self._queues[name]
        while (
            handler is not None
            and self._connected
            and not self._closing
            and queue
            and self._unsettled[name] < self._prefetch_count
        ):
            body, redelivered = queue.popleft()
            self._next_tag += 1
            message = InMemoryIncomingMessage(self, name, body, self._next_tag, redelivered)
            self._unsettled[name] += 1
            task = asyncio.create_task(self._deliver(handler, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(
        self,
        handler: Callable[[InMemoryIncomingMessage], Coroutine[Any, Any, None]],
        message: InMemoryIncomingMessage,
    ) -> None:
        try:
            await handler(message)
        except Exception:
            logger.exception("Unhandled error in consumer handler")
            if not message.processed:
                await message.reject(requeue=False)

    def _settled(self, message: InMemoryIncomingMessage, *, requeue: bool) -> None:
        name = message.queue_name
        self._unsettled[name] -= 1
        if requeue:
            self._queues[name].append((message.body, True))
        elif message.outcome == "ack":
            self.acked.append(message)
        else:
            self.dead_lettered.append(message)
        self._pump(name)

    async def wait_idle(self, timeout: float = 5.0, poll: float = 0.005) -> None:
        """Wait until every queue is empty and nothing is unsettled (for tests)."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while any(self._queues.values()) or any(self._unsettled.values()):
            if loop.time() >= deadline:
                raise asyncio.TimeoutError("In-memory broker did not become idle")
            await asyncio.sleep(poll)
