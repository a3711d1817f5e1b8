"""
JSON-lines logging for DocFlow.

Two context variables travel with each request task and are stamped onto
every record: ``request_id`` (set by the HTTP middleware in ``main.py``) and
``repository`` (bound by the pipeline while it works on one ``owner/repo``).
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
repository_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("repository", default=None)

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``repository`` only when bound."""

    def __init__(self, service: str = "docflow") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "request_id": request_id_ctx.get(),
            "message": record.getMessage(),
        }
        repository = repository_ctx.get()
        if repository:
            entry["repository"] = repository
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


@contextmanager
def bind_repository(full_name: str) -> Iterator[None]:
    """Tag every record emitted inside the block with ``full_name``."""
    token = repository_ctx.set(full_name)
    try:
        yield
    finally:
        repository_ctx.reset(token)


def setup_logging(level: str = "INFO", service: str = "docflow") -> None:
    """Send JSON lines to stdout, replacing any handlers already installed."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service))
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]
