"""Policy-driven audit trail for persistent entity mutations.

The persistence layer builds an ``EntitySnapshot`` per mutation and calls the
matching ``AuditRecorder.on_*`` method. Use ``build_recorder`` to wire a
recorder from ``AuditSettings`` at startup, ``orm.AuditSessionListener`` to
feed it from SQLAlchemy sessions, and ``testing.FakeAuditRecorder`` in tests.
"""

from .actions import ALL_ACTIONS, AuditAction
from .bootstrap import build_recorder
from .casts import FieldCast, cast_value, resolve_cast
from .changeset import REDACTED, SYSTEM_TIMESTAMP_COLUMNS, build_changes
from .config import AuditSettings, load_settings
from .entity import EntitySnapshot
from .errors import (
    AuditError,
    AuditFailure,
    CastError,
    FailureStage,
    PolicyDeclarationError,
)
from .formatters import AuditFormatter, JsonFormatter, PrefixedFormatter
from .gate import should_log
from .origin import AuditOrigin, bind_origin, clear_origin, get_origin, origin_scope
from .policy import AuditPolicy, PolicyRegistry, entity_type_of
from .providers import ContextProvider, StaticContextProvider, collect_context
from .recorder import AuditRecorder
from .sinks import AuditSink, LoggingSink

__all__ = [
    "ALL_ACTIONS",
    "AuditAction",
    "AuditError",
    "AuditFailure",
    "AuditFormatter",
    "AuditOrigin",
    "AuditPolicy",
    "AuditRecorder",
    "AuditSettings",
    "AuditSink",
    "CastError",
    "ContextProvider",
    "EntitySnapshot",
    "FailureStage",
    "FieldCast",
    "JsonFormatter",
    "LoggingSink",
    "PolicyDeclarationError",
    "PolicyRegistry",
    "PrefixedFormatter",
    "REDACTED",
    "StaticContextProvider",
    "SYSTEM_TIMESTAMP_COLUMNS",
    "bind_origin",
    "build_changes",
    "build_recorder",
    "cast_value",
    "clear_origin",
    "collect_context",
    "entity_type_of",
    "get_origin",
    "load_settings",
    "origin_scope",
    "resolve_cast",
    "should_log",
]
