"""Unit tests for audit entry formatters."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal

from packages.audit_trail.formatters import JsonFormatter, PrefixedFormatter


def _entry() -> dict[str, object]:
    return {
        "action": "updated",
        "context": "web",
        "entity_type": "app.User",
        "entity_id": 5,
        "actor_id": None,
        "ip": "127.0.0.1",
        "timestamp": "2026-10-19T12:00:00+00:00",
        "changes": {"name": {"old": "John", "new": "Jane"}, "tags": ["a", "b"]},
    }


def test_json_formatter_round_trips_entry() -> None:
    entry = _entry()

    output = JsonFormatter().format(entry)

    assert json.loads(output) == entry
    assert "\n" not in output


def test_json_formatter_stringifies_non_json_scalars() -> None:
    stamp = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

    output = JsonFormatter().format({"balance": Decimal("10.50"), "at": stamp})

    assert json.loads(output) == {"balance": "10.50", "at": str(stamp)}


def test_prefixed_formatter_wraps_inner_output() -> None:
    entry = _entry()

    output = PrefixedFormatter("CUSTOM:").format(entry)

    assert output.startswith("CUSTOM:")
    assert json.loads(output.removeprefix("CUSTOM:")) == entry


def test_prefixed_formatter_accepts_custom_inner() -> None:
    inner = PrefixedFormatter("[audit] ")

    output = PrefixedFormatter(">> ", inner=inner).format({"action": "created"})

    assert output == '>> [audit] {"action":"created"}'
