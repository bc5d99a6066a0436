"""Compute the filtered, normalized and redacted changeset for one event."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from . import fields
from .actions import KEY_ONLY_ACTIONS, AuditAction
from .casts import cast_value, normalize_values
from .entity import EntitySnapshot
from .policy import AuditPolicy

REDACTED: Final[str] = "[REDACTED]"

# The entry carries its own timestamp and action, so these never appear in a
# changeset body.
SYSTEM_TIMESTAMP_COLUMNS: Final[tuple[str, ...]] = (
    "created_at",
    "updated_at",
    "deleted_at",
)


def build_changes(
    snapshot: EntitySnapshot, action: AuditAction, policy: AuditPolicy
) -> dict[str, Any]:
    """Return the changeset to report for ``action`` on ``snapshot``.

    Raises ``CastError`` when a value cannot be normalized to its declared
    cast; callers treat that as an empty changeset.
    """
    if action in KEY_ONLY_ACTIONS:
        return {fields.ID: snapshot.key}

    if action is AuditAction.CREATED:
        return filter_columns(
            normalize_values(snapshot.attributes, snapshot.casts), policy
        )

    return filter_columns(_diff(snapshot, policy), policy, is_update=True)


def filter_columns(
    data: Mapping[str, Any], policy: AuditPolicy, *, is_update: bool = False
) -> dict[str, Any]:
    """Apply system-column removal, tracked/excluded columns and redaction."""
    filtered = {
        key: value
        for key, value in data.items()
        if key not in SYSTEM_TIMESTAMP_COLUMNS
        and (policy.columns is None or key in policy.columns)
        and key not in policy.exclude
    }

    for column in policy.redact:
        if column not in filtered:
            continue
        if is_update and policy.with_original:
            filtered[column] = {fields.OLD: REDACTED, fields.NEW: REDACTED}
        else:
            filtered[column] = REDACTED

    return filtered


def _diff(snapshot: EntitySnapshot, policy: AuditPolicy) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key, (old_value, new_value) in snapshot.changed_values().items():
        cast = snapshot.casts.get(key)
        if cast is not None:
            old_value = cast_value(old_value, cast)
            new_value = cast_value(new_value, cast)
            # Equal after casting means a representation change only, such as
            # 1 written over True.
            if old_value == new_value and type(old_value) is type(new_value):
                continue

        if policy.with_original:
            changes[key] = {fields.OLD: old_value, fields.NEW: new_value}
        else:
            changes[key] = new_value
    return changes
