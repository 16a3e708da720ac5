"""EnvelopeSerializer — JSON roundtrip for queue payloads."""

from __future__ import annotations

import json

from pydantic import ValidationError as PydanticValidationError

from relay_core.primitives.exceptions import MalformedMessageError

from .envelope import MessageEnvelope

CONTENT_TYPE = "application/json"


class EnvelopeSerializer:
    """Serialize/deserialize MessageEnvelope to/from JSON bytes.

    Anything that does not decode into a valid envelope raises
    ``MalformedMessageError`` carrying a bounded preview of the raw payload.
    """

    def __init__(self, preview_length: int = 512) -> None:
        self._preview_length = preview_length

    def serialize(self, envelope: MessageEnvelope) -> bytes:
        """Encode envelope to JSON bytes (wire key names)."""
        return json.dumps(envelope.to_wire()).encode("utf-8")

    def deserialize(self, raw: bytes) -> MessageEnvelope:
        """Decode JSON bytes to MessageEnvelope."""
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedMessageError(
                f"Payload is not valid JSON: {e}", self._preview(raw)
            ) from e
        if not isinstance(data, dict):
            raise MalformedMessageError(
                f"Payload must be a JSON object, got {type(data).__name__}",
                self._preview(raw),
            )
        try:
            return MessageEnvelope.model_validate(data)
        except PydanticValidationError as e:
            fields = ", ".join(
                ".".join(str(p) for p in err["loc"]) or "__root__" for err in e.errors()
            )
            raise MalformedMessageError(
                f"Payload is not a valid envelope (fields: {fields})",
                self._preview(raw),
            ) from e

    def _preview(self, raw: bytes) -> str:
        return raw[: self._preview_length].decode("utf-8", errors="replace")
