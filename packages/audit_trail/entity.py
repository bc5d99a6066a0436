"""Inbound entity snapshot handed to the recorder by the persistence layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_SOFT_DELETE_COLUMN = "deleted_at"


@dataclass(frozen=True)
class EntitySnapshot:
    """State of one entity at the moment a mutation was observed.

    ``attributes`` holds current stored values and ``original`` the values
    loaded before the mutation. ``changed`` lists the fields the persistence
    layer considers dirty; the recorder re-checks them against ``casts``.
    """

    entity_type: str
    key: Any
    attributes: Mapping[str, Any] = field(default_factory=dict)
    original: Mapping[str, Any] = field(default_factory=dict)
    changed: tuple[str, ...] = ()
    casts: Mapping[str, str] = field(default_factory=dict)
    supports_soft_delete: bool = False
    soft_delete_column: str = DEFAULT_SOFT_DELETE_COLUMN

    @property
    def is_soft_deleted(self) -> bool:
        """Return True when the entity currently carries a soft-delete marker."""
        return (
            self.supports_soft_delete
            and self.attributes.get(self.soft_delete_column) is not None
        )

    def changed_values(self) -> dict[str, tuple[Any, Any]]:
        """Return ``(old, new)`` raw value pairs for every changed field."""
        return {
            name: (self.original.get(name), self.attributes.get(name))
            for name in self.changed
        }
