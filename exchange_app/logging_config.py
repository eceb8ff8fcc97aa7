"""Structured JSON logging scoped to the request being served.

Each HTTP request runs inside :func:`request_context`, which binds a
correlation id together with the method and route. :func:`log_event` stamps
that scope onto every entry, so services and providers only pass the fields
describing what happened. Contact details, credentials and swap message
bodies are scrubbed before anything is written.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
}
_SENSITIVE_KEYS = frozenset(
    {
        "email",
        "phone",
        "phone_number",
        "address",
        "authorization",
        "token",
        "secret",
        "client_secret",
        "content",
        "image_url",
        "user_photo_url",
    }
)
_SENSITIVE_SUFFIXES = ("_address", "_token", "_secret", "api_key")
_TEXT_PATTERNS = (
    (re.compile(r"[\w.+\-]+@[\w\-]+\.[\w.\-]+"), "[redacted-email]"),
    (re.compile(r"AIza[0-9A-Za-z_\-]{6,}"), "[redacted-key]"),
    (re.compile(r"\b[sr]k_(?:live|test)_[0-9A-Za-z]+"), "[redacted-key]"),
)


@dataclass(frozen=True)
class RequestScope:
    correlation_id: str
    method: Optional[str] = None
    route: Optional[str] = None

    def as_fields(self) -> Dict[str, str]:
        fields = {"correlation_id": self.correlation_id, "method": self.method, "route": self.route}
        return {key: value for key, value in fields.items() if value is not None}


_SCOPE: contextvars.ContextVar[Optional[RequestScope]] = contextvars.ContextVar("request_scope", default=None)


def current_scope() -> RequestScope:
    """Return the active scope, opening a bare one for work outside a request."""

    scope = _SCOPE.get()
    if scope is None:
        scope = RequestScope(uuid.uuid4().hex)
        _SCOPE.set(scope)
    return scope


@contextlib.contextmanager
def request_context(
    correlation_id: str | None = None, *, method: str | None = None, route: str | None = None
) -> Iterator[RequestScope]:
    token = _SCOPE.set(RequestScope(correlation_id or uuid.uuid4().hex, method=method, route=route))
    try:
        yield _SCOPE.get()
    finally:
        _SCOPE.reset(token)


def _is_sensitive(key: Any) -> bool:
    name = str(key).lower()
    return name in _SENSITIVE_KEYS or name.endswith(_SENSITIVE_SUFFIXES)


def _scrub_text(value: str) -> str:
    for pattern, replacement in _TEXT_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def redact_for_log(payload: Any) -> Any:
    """Recursively scrub contact details, credentials and message bodies."""

    if payload is None or isinstance(payload, (bool, int, float)):
        return payload
    if isinstance(payload, str):
        return _scrub_text(payload)
    if isinstance(payload, (list, tuple, set, frozenset)):
        return [redact_for_log(item) for item in payload]
    if isinstance(payload, dict):
        return {
            key: "[redacted]" if _is_sensitive(key) else redact_for_log(value)
            for key, value in payload.items()
        }
    return _scrub_text(str(payload))


class JsonFormatter(logging.Formatter):
    """One JSON object per line; the request scope fills in what the record lacks."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", message),
            "message": _scrub_text(message),
        }
        scope = _SCOPE.get()
        if scope is not None:
            payload.update(scope.as_fields())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload[key] = "[redacted]" if _is_sensitive(key) else redact_for_log(value)
        return json.dumps(payload, default=str)


def configure_logging(level: int | str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log ``event`` with the request scope; explicit ``fields`` win over scope values."""

    exc_info = fields.pop("exc_info", None)
    entry: Dict[str, Any] = current_scope().as_fields()
    entry.update(redact_for_log(fields))
    logger.log(level, event, exc_info=exc_info, extra={"event": event, **entry})


__all__ = [
    "RequestScope",
    "JsonFormatter",
    "configure_logging",
    "current_scope",
    "get_logger",
    "log_event",
    "redact_for_log",
    "request_context",
]
