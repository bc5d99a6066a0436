"""Mutation event kinds recorded by the audit trail."""

from __future__ import annotations

from enum import Enum


class AuditAction(str, Enum):
    """Closed set of entity mutation outcomes that can produce an entry."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SOFT_DELETED = "soft_deleted"
    RESTORED = "restored"


ALL_ACTIONS: tuple[AuditAction, ...] = tuple(AuditAction)

# Actions whose changeset is the identity key only.
KEY_ONLY_ACTIONS: frozenset[AuditAction] = frozenset(
    {AuditAction.DELETED, AuditAction.SOFT_DELETED, AuditAction.RESTORED}
)
