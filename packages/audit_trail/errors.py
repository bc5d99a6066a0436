"""Typed errors and failure reports for the audit trail.

Audit recording is subordinate to the business operation that triggered it.
Errors raised inside the pipeline are caught at the stage that owns them and
converted into an ``AuditFailure`` for an optional out-of-band reporter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .actions import AuditAction


@dataclass(frozen=True)
class AuditError(Exception):
    """Base error type for audit trail failures."""

    message: str

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message


@dataclass(frozen=True)
class CastError(AuditError):
    """A stored field value could not be converted to its declared cast."""

    cast: str = ""
    cause: Exception | None = None


@dataclass(frozen=True)
class PolicyDeclarationError(AuditError):
    """An entity type's audit policy declaration is malformed or conflicting."""

    entity_type: str = ""


class FailureStage(str, Enum):
    """Pipeline stage at which a swallowed failure occurred."""

    POLICY = "policy"
    CHANGES = "changes"
    CONTEXT = "context"
    EMIT = "emit"
    INTERNAL = "internal"


@dataclass(frozen=True)
class AuditFailure:
    """Structured description of one failure the recorder swallowed."""

    stage: FailureStage
    entity_type: str
    action: AuditAction | None
    exception: Exception

    @property
    def exception_type(self) -> str:
        """Return the class name of the underlying exception."""
        return type(self.exception).__name__


ErrorReporter = Callable[[AuditFailure], None]
