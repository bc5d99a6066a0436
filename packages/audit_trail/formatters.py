"""Serialize audit entries into the string handed to the sink."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol


class AuditFormatter(Protocol):
    """Formatter contract for assembled audit entries."""

    def format(self, entry: Mapping[str, Any]) -> str:
        """Return the serialized form of one entry."""


class JsonFormatter:
    """Emit one compact JSON object per entry."""

    def format(self, entry: Mapping[str, Any]) -> str:
        """Format the entry as JSON, stringifying non-JSON scalars."""
        return json.dumps(entry, default=str, separators=(",", ":"))


class PrefixedFormatter:
    """Wrap another formatter and prepend a fixed prefix."""

    def __init__(self, prefix: str, inner: AuditFormatter | None = None) -> None:
        self._prefix = prefix
        self._inner = inner or JsonFormatter()

    def format(self, entry: Mapping[str, Any]) -> str:
        """Return ``prefix`` followed by the inner formatter output."""
        return f"{self._prefix}{self._inner.format(entry)}"
