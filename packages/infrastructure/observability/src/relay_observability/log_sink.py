"""LogSinkHandler — best-effort shipping of log entries to a log-search service."""

from __future__ import annotations

import copy
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Any

import httpx

from .logging_config import TraceIdFilter, build_entry

_IGNORED_LOGGERS = ("httpx", "httpcore")


class _HttpPostHandler(logging.Handler):
    """Runs on the listener thread; POSTs one JSON entry per record."""

    def __init__(self, endpoint: str, service_name: str, client: httpx.Client) -> None:
        super().__init__()
        self.endpoint = endpoint
        self.service_name = service_name
        self.client = client
        self._failing = False

    def emit(self, record: logging.LogRecord) -> None:
        try:
            response = self.client.post(self.endpoint, json=build_entry(record, self.service_name))
            response.raise_for_status()
        except httpx.HTTPError as e:
            if not self._failing:
                self._failing = True
                sys.stderr.write(f"Log sink unavailable ({self.endpoint}): {e}\n")
            return
        if self._failing:
            self._failing = False
            sys.stderr.write(f"Log sink recovered ({self.endpoint})\n")


class LogSinkHandler(QueueHandler):
    """
    Non-blocking handler forwarding records to ``{url}/api/logs``.

    Records are queued on the caller's thread and posted from a
    ``QueueListener`` thread with an ``httpx.Client``. Delivery is
    best-effort: a failed post is dropped and reported once on stderr until
    the sink recovers. Logging never raises because of the sink.
    """

    def __init__(
        self,
        url: str,
        *,
        service_name: str = "notify-relay",
        timeout: float = 2.0,
        client: httpx.Client | None = None,
        max_queue: int = 10_000,
    ) -> None:
        super().__init__(queue.Queue(maxsize=max_queue))
        self.endpoint = f"{url.rstrip('/')}/api/logs"
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._poster = _HttpPostHandler(self.endpoint, service_name, self._client)
        self._listener = QueueListener(self.queue, self._poster, respect_handler_level=False)
        self._started = False
        self.dropped = 0
        self.addFilter(TraceIdFilter())
        self.addFilter(lambda r: not r.name.startswith(_IGNORED_LOGGERS))

    def prepare(self, record: logging.LogRecord) -> Any:
        # Other handlers share the record; render message and traceback on a copy.
        record = copy.copy(record)
        record.msg = record.getMessage()
        record.args = None
        if record.exc_info:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
            record.exc_info = None
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1

    def start(self) -> None:
        if not self._started:
            self._listener.start()
            self._started = True

    def stop(self) -> None:
        """Flush queued records, stop the listener thread and close the client."""
        if self._started:
            self._listener.stop()
            self._started = False
        if self._owns_client:
            self._client.close()

    def close(self) -> None:
        self.stop()
        super().close()
