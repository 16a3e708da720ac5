"""Logging for the notification relay: JSON formatting with trace IDs and a log sink."""

from __future__ import annotations

from .log_sink import LogSinkHandler
from .logging_config import (
    JsonLogFormatter,
    TraceIdFilter,
    build_entry,
    configure_logging,
)

__all__ = [
    "JsonLogFormatter",
    "LogSinkHandler",
    "TraceIdFilter",
    "build_entry",
    "configure_logging",
]
