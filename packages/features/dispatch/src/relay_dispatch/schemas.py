"""Ingress request and response shapes."""

from __future__ import annotations

from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from relay_core.channel import Channel
from relay_core.primitives.exceptions import ValidationError


class MessageRequest(BaseModel):
    """A client's request to send one notification."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    to: str
    subject: str | None = None
    body: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("to", "body")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @classmethod
    def parse(cls, data: Any) -> MessageRequest:
        """Validate raw input, raising the relay's ``ValidationError``.

        Errors are grouped per field: ``{"to": ["Field required"], ...}``.
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            errors: dict[str, list[str]] = {}
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"]) or "__root__"
                errors.setdefault(field, []).append(err["msg"])
            raise ValidationError(errors) from e


class SubmitReceipt(BaseModel):
    """Returned once a message is durably queued."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    trace_id: str
