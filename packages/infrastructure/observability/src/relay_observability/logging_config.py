"""Log formatting with trace IDs, and root logger setup."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from relay_core.correlation import get_trace_id

if TYPE_CHECKING:
    from typing import TextIO

    from .log_sink import LogSinkHandler

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [trace=%(trace_id)s] %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
    | {"message", "asctime", "trace_id", "taskName"}
)

_INSTALLED_MARK = "_relay_installed"


class TraceIdFilter(logging.Filter):
    """Stamps ``record.trace_id`` from the current context.

    An explicit ``extra={"trace_id": ...}`` takes precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "trace_id", None) is None:
            record.trace_id = get_trace_id()
        return True


def record_metadata(record: logging.LogRecord) -> dict[str, Any]:
    """Custom ``extra`` fields of *record*."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}


def build_entry(record: logging.LogRecord, service_name: str) -> dict[str, Any]:
    """The structured form of *record* shared by console and sink output."""
    metadata = record_metadata(record)
    metadata["logger"] = record.name
    if record.exc_info:
        metadata["exception"] = logging.Formatter().formatException(record.exc_info)
    elif record.exc_text:
        metadata["exception"] = record.exc_text
    return {
        "level": record.levelname.lower(),
        "message": record.getMessage(),
        "service": service_name,
        "traceId": getattr(record, "trace_id", None),
        "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "metadata": metadata,
    }


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line: level, message, service, traceId, timestamp, metadata."""

    def __init__(self, service_name: str = "notify-relay") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(build_entry(record, self.service_name), default=str)


def configure_logging(
    level: str | int = "INFO",
    *,
    service_name: str = "notify-relay",
    json_output: bool = True,
    log_sink_url: str | None = None,
    log_sink_timeout: float = 2.0,
    stream: TextIO | None = None,
) -> LogSinkHandler | None:
    """Install the relay's handlers on the root logger.

    Calling it again replaces the handlers a previous call installed. When
    *log_sink_url* is given the returned sink handler is already started;
    the caller stops it on shutdown.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _INSTALLED_MARK, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(stream or sys.stdout)
    console.addFilter(TraceIdFilter())
    console.setFormatter(JsonLogFormatter(service_name) if json_output else logging.Formatter(TEXT_FORMAT))
    setattr(console, _INSTALLED_MARK, True)
    root.addHandler(console)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    sink: LogSinkHandler | None = None
    if log_sink_url:
        from .log_sink import LogSinkHandler

        sink = LogSinkHandler(log_sink_url, service_name=service_name, timeout=log_sink_timeout)
        setattr(sink, _INSTALLED_MARK, True)
        root.addHandler(sink)
        sink.start()

    # httpx logs every request at INFO; keep that out of the relay's own output.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return sink
