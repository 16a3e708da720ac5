"""HTTP routes: message submission, lookup, statistics and health."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from relay_core.channel import Channel
from relay_core.primitives.exceptions import ValidationError
from relay_notifications.delivery import DeliveryStatus

from ...app import NotificationRelay
from ...schemas import MessageRequest
from .middleware import request_trace_id

router = APIRouter()


def get_relay(request: Request) -> NotificationRelay:
    """FastAPI dependency returning the relay attached by ``create_app``."""
    return request.app.state.relay  # type: ignore[no-any-return]


def _parse_enum(enum_cls: Any, field: str, value: str | None) -> Any:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError({field: [f"must be one of: {allowed}"]}) from None


@router.post("/api/messages", status_code=202)
async def submit_message(
    request: Request, relay: NotificationRelay = Depends(get_relay)
) -> JSONResponse:
    trace_id = request_trace_id(request)
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON") from None

    message = MessageRequest.parse(payload)
    receipt = await relay.submit(message, trace_id)
    return JSONResponse(
        status_code=202,
        content={
            "success": True,
            "message": "Message queued for processing",
            "messageId": receipt.message_id,
            "traceId": receipt.trace_id,
        },
    )


@router.get("/api/messages/{message_id}")
async def get_message(
    message_id: str, request: Request, relay: NotificationRelay = Depends(get_relay)
) -> JSONResponse:
    record = await relay.ledger.get(message_id)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": "Message not found",
                "traceId": request_trace_id(request),
            },
        )
    return JSONResponse(content={"success": True, "data": record.to_dict()})


@router.get("/api/messages")
async def list_messages(
    channel: str | None = None,
    status: str | None = None,
    relay: NotificationRelay = Depends(get_relay),
) -> dict[str, Any]:
    records = await relay.ledger.list(
        channel=_parse_enum(Channel, "channel", channel),
        status=_parse_enum(DeliveryStatus, "status", status),
    )
    return {"success": True, "count": len(records), "data": [r.to_dict() for r in records]}


@router.get("/api/stats")
async def get_stats(relay: NotificationRelay = Depends(get_relay)) -> dict[str, Any]:
    return {"success": True, "data": await relay.stats()}


@router.get("/health")
async def health(relay: NotificationRelay = Depends(get_relay)) -> JSONResponse:
    report = await relay.health.status()
    status_code = 200 if report["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content={"success": status_code == 200, **report})
