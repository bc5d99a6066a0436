"""Stdout logging configuration for diagnostics and the audit channel.

Design goals:
- Diagnostics emit to stdout, as JSON by default, for container log collection.
- The audit channel writes each formatted entry verbatim, one per line, and
  does not propagate to the root logger.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

_SERVICE_FIELD = "service"

# Record attributes copied into diagnostics when callers pass them via
# ``extra=diagnostic_fields(...)``.
DIAGNOSTIC_FIELDS = ("entity_type", "action", "stage")


def diagnostic_fields(
    entity_type: str, action: Any = None, stage: Any = None
) -> dict[str, str]:
    """Return ``extra`` values describing which audit event a log line is about."""
    values = {"entity_type": entity_type}
    if action is not None:
        values["action"] = str(getattr(action, "value", action))
    if stage is not None:
        values["stage"] = str(getattr(stage, "value", stage))
    return values


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    found: dict[str, Any] = {}
    service = getattr(record, _SERVICE_FIELD, None)
    if service:
        found[_SERVICE_FIELD] = service
    for name in DIAGNOSTIC_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            found[name] = value
    return found


class ServiceFilter(logging.Filter):
    """Stamp every diagnostic record with the configured service name."""

    def __init__(self, service: str) -> None:
        super().__init__()
        self._service = service

    def filter(self, record: logging.LogRecord) -> bool:
        setattr(record, _SERVICE_FIELD, self._service)
        return True


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per diagnostic record, audit fields included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Human-readable diagnostic formatter with ``key=value`` audit fields."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extra = _record_fields(record)
        if not extra:
            return message
        return message + " " + " ".join(f"{k}={v}" for k, v in extra.items())


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
) -> None:
    """Configure root logging with a single stdout handler.

    Existing root handlers are replaced, so repeated calls do not duplicate
    output.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level.upper())
    if service:
        handler.addFilter(ServiceFilter(service))
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root.addHandler(handler)


def configure_channel(
    channel: str,
    *,
    stream: TextIO | None = None,
    level: str = "INFO",
) -> logging.Logger:
    """Attach a raw-message stream handler to the audit channel logger.

    Entries are already serialized by the active formatter, so the handler
    writes ``record.getMessage()`` unchanged.
    """
    logger = logging.getLogger(channel)
    logger.handlers.clear()
    logger.setLevel(level.upper())
    logger.propagate = False

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(level.upper())
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger using Python's standard logging hierarchy."""
    return logging.getLogger(name)
