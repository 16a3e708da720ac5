"""Map relay exceptions to JSON error responses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from relay_core.primitives.exceptions import (
    DuplicateRequestError,
    PublishExhaustedError,
    RelayError,
    ValidationError,
)

from .middleware import request_trace_id

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger("relay.api")


def _error(request: Request, status_code: int, error: str, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra, "traceId": request_trace_id(request)},
    )


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning("Validation failed", extra={"errors": exc.errors})
    return _error(request, 400, "Validation failed", errors=exc.errors)


async def _duplicate(request: Request, exc: DuplicateRequestError) -> JSONResponse:
    return _error(request, 409, str(exc))


async def _publish_exhausted(request: Request, exc: PublishExhaustedError) -> JSONResponse:
    logger.error("Error processing message", extra={"error": str(exc)})
    return _error(request, 500, "Failed to process message")


async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
    logger.error(
        "Unhandled relay error",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
    )
    return _error(request, 500, "Internal Server Error")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the relay's error responses on *app*."""
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(DuplicateRequestError, _duplicate)
    app.add_exception_handler(PublishExhaustedError, _publish_exhausted)
    app.add_exception_handler(RelayError, _relay_error)
