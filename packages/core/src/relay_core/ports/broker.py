"""IBrokerClient - Protocol for the queue broker and its incoming deliveries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine


@runtime_checkable
class IIncomingMessage(Protocol):
    """
    A delivery handed to a consumer handler.

    The handler owns the outcome: exactly one of ``ack``, ``nack`` or
    ``reject`` settles the delivery. aio-pika's ``AbstractIncomingMessage``
    satisfies this protocol.
    """

    body: bytes

    @property
    def delivery_tag(self) -> int | None: ...

    async def ack(self, multiple: bool = False) -> None: ...

    async def nack(self, multiple: bool = False, requeue: bool = True) -> None: ...

    async def reject(self, requeue: bool = False) -> None: ...


@runtime_checkable
class IBrokerClient(Protocol):
    """
    Port for the durable queue the relay publishes to and consumes from.

    Infrastructure packages provide concrete adapters (RabbitMQ, in-memory).
    """

    async def connect(self) -> None:
        """Open the connection and channel; re-declare queues, resume consumers."""
        ...

    async def declare_queue(self, name: str, durable: bool = True) -> None:
        """Declare *name* and remember it for re-declaration after reconnect."""
        ...

    async def publish(self, queue_name: str, envelope: Any) -> bool:
        """
        Publish *envelope* to *queue_name*.

        Returns:
            ``False`` when the broker refuses the write (back-pressure / nack).
            Callers treat ``False`` exactly like a raised failure.
        """
        ...

    async def consume(
        self,
        queue_name: str,
        handler: Callable[[IIncomingMessage], Coroutine[Any, Any, None]],
    ) -> None:
        """Subscribe *handler* to *queue_name* (manual acknowledgement)."""
        ...

    async def close(self, timeout: float = 10.0) -> None:
        """Stop consuming, let in-flight handlers finish, then disconnect."""
        ...

    async def health_check(self) -> bool:
        """Return True if connection and channel are open."""
        ...
