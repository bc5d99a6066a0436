"""Unit tests for changeset building, filtering and redaction."""

from __future__ import annotations

from typing import Any

import pytest

from packages.audit_trail.actions import AuditAction
from packages.audit_trail.changeset import REDACTED, build_changes, filter_columns
from packages.audit_trail.entity import EntitySnapshot
from packages.audit_trail.errors import CastError
from packages.audit_trail.policy import AuditPolicy


def _snapshot(
    attributes: dict[str, Any],
    original: dict[str, Any] | None = None,
    casts: dict[str, str] | None = None,
    changed: tuple[str, ...] | None = None,
) -> EntitySnapshot:
    original = dict(attributes) if original is None else original
    if changed is None:
        changed = tuple(
            key for key, value in attributes.items() if original.get(key) != value
        )
    return EntitySnapshot(
        entity_type="app.User",
        key=7,
        attributes=attributes,
        original=original,
        changed=changed,
        casts=casts or {},
    )


@pytest.mark.parametrize(
    "action",
    [AuditAction.DELETED, AuditAction.SOFT_DELETED, AuditAction.RESTORED],
)
def test_key_only_actions_report_identity(action: AuditAction) -> None:
    snapshot = _snapshot({"id": 7, "name": "John", "password": "secret"})
    policy = AuditPolicy(columns=frozenset({"name"}), redact=frozenset({"id"}))

    assert build_changes(snapshot, action, policy) == {"id": 7}


def test_created_normalizes_and_drops_system_timestamps() -> None:
    snapshot = _snapshot(
        {
            "id": 7,
            "is_active": 1,
            "settings": '{"theme": "dark"}',
            "created_at": "2026-01-01T00:00:00",
            "updated_at": "2026-01-01T00:00:00",
            "deleted_at": None,
        },
        casts={"is_active": "boolean", "settings": "json"},
    )

    changes = build_changes(snapshot, AuditAction.CREATED, AuditPolicy())

    assert changes == {"id": 7, "is_active": True, "settings": {"theme": "dark"}}


def test_updated_reports_old_and_new_pairs() -> None:
    snapshot = _snapshot(
        {"name": "Jane", "email": "john@example.com"},
        original={"name": "John", "email": "john@example.com"},
    )

    changes = build_changes(snapshot, AuditAction.UPDATED, AuditPolicy())

    assert changes == {"name": {"old": "John", "new": "Jane"}}


def test_updated_without_original_reports_new_value_only() -> None:
    snapshot = _snapshot({"name": "Jane"}, original={"name": "John"})

    changes = build_changes(
        snapshot, AuditAction.UPDATED, AuditPolicy(with_original=False)
    )

    assert changes == {"name": "Jane"}


def test_updated_skips_fields_equal_after_casting() -> None:
    snapshot = _snapshot(
        {"is_active": 1, "settings": '{"theme": "dark"}'},
        original={"is_active": True, "settings": {"theme": "dark"}},
        casts={"is_active": "boolean", "settings": "array"},
        changed=("is_active", "settings"),
    )

    assert build_changes(snapshot, AuditAction.UPDATED, AuditPolicy()) == {}


def test_updated_reports_cast_values_not_raw_values() -> None:
    snapshot = _snapshot(
        {"is_active": 0}, original={"is_active": 1}, casts={"is_active": "bool"}
    )

    changes = build_changes(snapshot, AuditAction.UPDATED, AuditPolicy())

    assert changes == {"is_active": {"old": True, "new": False}}


def test_updated_raises_cast_error_for_malformed_structured_value() -> None:
    snapshot = _snapshot(
        {"settings": "{broken"},
        original={"settings": "{}"},
        casts={"settings": "json"},
    )

    with pytest.raises(CastError):
        build_changes(snapshot, AuditAction.UPDATED, AuditPolicy())


def test_columns_and_exclude_compose() -> None:
    data = {"name": "a", "email": "b", "status": "c", "updated_at": "d"}
    policy = AuditPolicy(
        columns=frozenset({"name", "email", "updated_at"}),
        exclude=frozenset({"email"}),
    )

    assert filter_columns(data, policy) == {"name": "a"}


def test_exclude_wins_over_columns_and_redaction() -> None:
    policy = AuditPolicy(
        columns=frozenset({"password"}),
        exclude=frozenset({"password"}),
        redact=frozenset({"password"}),
    )

    assert filter_columns({"password": "secret"}, policy) == {}


def test_redaction_on_create_replaces_value() -> None:
    snapshot = _snapshot({"name": "John", "password": "Secret-123!"})
    policy = AuditPolicy(redact=frozenset({"password"}))

    changes = build_changes(snapshot, AuditAction.CREATED, policy)

    assert changes == {"name": "John", "password": REDACTED}


def test_redaction_on_update_is_symmetric() -> None:
    snapshot = _snapshot({"password": "secret-new"}, original={"password": "secret-old"})
    policy = AuditPolicy(redact=frozenset({"password"}))

    changes = build_changes(snapshot, AuditAction.UPDATED, policy)

    assert changes == {"password": {"old": REDACTED, "new": REDACTED}}


def test_redaction_on_update_without_original_is_single_marker() -> None:
    snapshot = _snapshot({"password": "secret-new"}, original={"password": "secret-old"})
    policy = AuditPolicy(redact=frozenset({"password"}), with_original=False)

    changes = build_changes(snapshot, AuditAction.UPDATED, policy)

    assert changes == {"password": REDACTED}


def test_untracked_column_update_yields_empty_changeset() -> None:
    snapshot = _snapshot(
        {"name": "John", "status": "inactive"},
        original={"name": "John", "status": "active"},
    )
    policy = AuditPolicy(columns=frozenset({"name", "email"}))

    assert build_changes(snapshot, AuditAction.UPDATED, policy) == {}
