"""Exception taxonomy for notify-relay."""

from __future__ import annotations


class RelayError(Exception):
    """Root exception for the entire relay."""


class ValidationError(RelayError):
    """Raised when an inbound request fails validation.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class DuplicateRequestError(RelayError):
    """Raised when an identical request was accepted inside the dedup window.

    Recoverable by the client: change the content or wait the window out.
    """

    def __init__(self, dedup_key: str, channel: str, recipient: str) -> None:
        self.dedup_key = dedup_key
        self.channel = channel
        self.recipient = recipient
        super().__init__("Duplicate message detected")


class UnsupportedChannelError(RelayError):
    """Raised when no queue or sender is configured for a channel.

    This is a programmer/configuration error, never an expected delivery
    outcome.
    """

    def __init__(self, channel: object) -> None:
        self.channel = channel
        super().__init__(f"Unsupported channel: {channel}")


class InfrastructureError(RelayError):
    """Base class for all infrastructure-related errors."""


class PublishExhaustedError(InfrastructureError):
    """Raised when the broker rejected publication on every attempt."""

    def __init__(
        self,
        message_id: str,
        attempts: int,
        last_error: str | None = None,
    ) -> None:
        self.message_id = message_id
        self.attempts = attempts
        self.last_error = last_error
        msg = f"Failed to publish message after {attempts} attempts"
        if last_error:
            msg += f": {last_error}"
        super().__init__(msg)


class BrokerError(InfrastructureError):
    """Base class for message broker failures."""


class BrokerConnectionLostError(BrokerError):
    """Raised when there is no usable broker connection or channel.

    Triggers the broker client's reconnect loop; callers see a transient
    failure only.
    """


class DeliveryFailedError(InfrastructureError):
    """A single delivery attempt failed.

    Internal to the worker: attempts are retried up to the configured bound and
    then recorded as a terminal ledger failure, never raised to a caller.
    """

    def __init__(self, message_id: str, channel: str, reason: str) -> None:
        self.message_id = message_id
        self.channel = channel
        self.reason = reason
        super().__init__(f"Delivery of {message_id} via {channel} failed: {reason}")


class MalformedMessageError(InfrastructureError):
    """Raised when a queued payload cannot be decoded into an envelope.

    Such messages are dropped without retry; ``payload_preview`` keeps enough
    of the raw body for manual inspection.
    """

    def __init__(self, reason: str, payload_preview: str = "") -> None:
        self.reason = reason
        self.payload_preview = payload_preview
        super().__init__(reason)
