from __future__ import annotations

import contextvars
import json
import logging
import sys
from typing import Any

_request_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_client_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "client_id", default=None
)

_CONTEXT_FIELDS = ("request_id", "client_id")

# Attributes every LogRecord carries; anything else came from ``extra=``.
_STANDARD_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)


class RequestContextFilter(logging.Filter):
    """Copy the request and client identifiers onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.request_id = _request_id_ctx_var.get()
        record.client_id = _client_id_ctx_var.get()
        return True


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line, context fields first."""

    def __init__(self) -> None:  # pragma: no cover - trivial
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            log_entry[key] = record.__dict__.get(key)

        for key, value in record.__dict__.items():
            if key in _CONTEXT_FIELDS or key in _STANDARD_ATTRIBUTES:
                continue
            if key.startswith("_"):
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


_configured = False


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send every logger through a single JSON handler on stdout."""

    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "celery"):
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.propagate = True

    _configured = True


_ContextTokens = tuple[contextvars.Token, contextvars.Token]


def bind_request_context(request_id: str, client_id: str | None) -> _ContextTokens:
    """Attach the request id and caller address to records logged from here on."""

    return _request_id_ctx_var.set(request_id), _client_id_ctx_var.set(client_id)


def reset_request_context(tokens: _ContextTokens) -> None:
    request_token, client_token = tokens
    _request_id_ctx_var.reset(request_token)
    _client_id_ctx_var.reset(client_token)


__all__ = [
    "JSONLogFormatter",
    "RequestContextFilter",
    "bind_request_context",
    "configure_logging",
    "reset_request_context",
]
