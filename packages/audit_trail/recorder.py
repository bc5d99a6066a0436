"""Audit recorder orchestrating gate, policy, changeset, context and output.

The persistence layer calls one ``on_*`` method per observed mutation. Each
call runs to completion synchronously and either emits exactly one entry or
suppresses it. Nothing raised inside the pipeline reaches the caller: an audit
failure must never fail the business operation that triggered it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Callable

from . import fields
from .actions import AuditAction
from .changeset import build_changes
from .config import AuditSettings
from .entity import EntitySnapshot
from .errors import AuditFailure, CastError, ErrorReporter, FailureStage
from .formatters import AuditFormatter, JsonFormatter
from .gate import should_log
from .logging import diagnostic_fields, get_logger
from .origin import get_origin
from .policy import AuditPolicy, PolicyRegistry
from .providers import ContextProvider, collect_context
from .sinks import AuditSink, LoggingSink

_LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AuditRecorder:
    """Turn entity mutation notifications into formatted audit entries."""

    def __init__(
        self,
        *,
        settings: AuditSettings,
        registry: PolicyRegistry,
        providers: Sequence[ContextProvider] = (),
        formatter: AuditFormatter | None = None,
        sink: AuditSink | None = None,
        clock: Clock = _utc_now,
        on_error: ErrorReporter | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.providers = tuple(providers)
        self.formatter = formatter or JsonFormatter()
        self.sink = sink or LoggingSink(settings.channel)
        self._clock = clock
        self._on_error = on_error

    def on_created(self, snapshot: EntitySnapshot) -> bool:
        """Record a newly persisted entity."""
        return self.record(AuditAction.CREATED, snapshot)

    def on_updated(self, snapshot: EntitySnapshot) -> bool:
        """Record changes to an existing entity."""
        return self.record(AuditAction.UPDATED, snapshot)

    def on_deleted(self, snapshot: EntitySnapshot) -> bool:
        """Record a deletion, distinguishing soft from hard deletes."""
        return self.record(self.deletion_action(snapshot), snapshot)

    def on_restored(self, snapshot: EntitySnapshot) -> bool:
        """Record a soft-deleted entity being restored."""
        return self.record(AuditAction.RESTORED, snapshot)

    @staticmethod
    def deletion_action(snapshot: EntitySnapshot) -> AuditAction:
        """Return ``SOFT_DELETED`` when the entity still carries its marker."""
        if snapshot.is_soft_deleted:
            return AuditAction.SOFT_DELETED
        return AuditAction.DELETED

    def record(self, action: AuditAction, snapshot: EntitySnapshot) -> bool:
        """Run the pipeline for one event; return True if an entry was emitted."""
        try:
            entry = self.build_entry(action, snapshot)
        except Exception as exc:
            _LOGGER.warning(
                "Audit pipeline failed for %s %s: %s",
                snapshot.entity_type,
                action.value,
                exc,
                extra=diagnostic_fields(
                    snapshot.entity_type, action, FailureStage.INTERNAL
                ),
            )
            self._report(FailureStage.INTERNAL, snapshot.entity_type, action, exc)
            return False
        if entry is None:
            return False
        self.emit(entry)
        return True

    def build_entry(
        self, action: AuditAction, snapshot: EntitySnapshot
    ) -> dict[str, Any] | None:
        """Assemble the entry for one event, or None when it is suppressed."""
        if not self.should_log():
            return None

        policy = self.registry.resolve(snapshot.entity_type)
        if policy is None or not policy.tracks(action):
            return None

        changes = self._changes(snapshot, action, policy)
        if action is AuditAction.UPDATED and not changes:
            return None

        origin = get_origin()
        entry: dict[str, Any] = {
            fields.ACTION: action.value,
            fields.CONTEXT: origin.context,
            fields.ENTITY_TYPE: snapshot.entity_type,
            fields.ENTITY_ID: snapshot.key,
            fields.ACTOR_ID: origin.actor_id,
            fields.IP: origin.ip,
            fields.TIMESTAMP: self._clock().isoformat(),
        }
        # Provider keys may replace core keys; providers run in configured order.
        entry.update(
            collect_context(self.providers, snapshot, action, on_error=self._deliver)
        )
        entry[fields.CHANGES] = changes
        return entry

    def emit(self, entry: dict[str, Any]) -> None:
        """Format and write one entry, discarding any failure."""
        try:
            self.sink.write(self.formatter.format(entry))
        except Exception as exc:
            entity_type = str(entry.get(fields.ENTITY_TYPE, ""))
            action = _action_of(entry)
            _LOGGER.debug(
                "Discarding audit entry after emit failure: %s",
                exc,
                extra=diagnostic_fields(entity_type, action, FailureStage.EMIT),
            )
            self._report(FailureStage.EMIT, entity_type, action, exc)

    def should_log(self) -> bool:
        """Return True when the global switch and environment allow auditing."""
        return should_log(
            self.settings.enabled,
            self.settings.environments,
            self.settings.environment,
        )

    def _changes(
        self, snapshot: EntitySnapshot, action: AuditAction, policy: AuditPolicy
    ) -> dict[str, Any]:
        try:
            return build_changes(snapshot, action, policy)
        except CastError as exc:
            _LOGGER.warning(
                "Audit changeset for %s %s degraded to empty: %s",
                snapshot.entity_type,
                action.value,
                exc,
                extra=diagnostic_fields(
                    snapshot.entity_type, action, FailureStage.CHANGES
                ),
            )
            self._report(FailureStage.CHANGES, snapshot.entity_type, action, exc)
            return {}

    def _report(
        self,
        stage: FailureStage,
        entity_type: str,
        action: AuditAction | None,
        exc: Exception,
    ) -> None:
        self._deliver(
            AuditFailure(
                stage=stage, entity_type=entity_type, action=action, exception=exc
            )
        )

    def _deliver(self, failure: AuditFailure) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(failure)
        except Exception:
            _LOGGER.debug("Audit error reporter failed", exc_info=True)


def _action_of(entry: dict[str, Any]) -> AuditAction | None:
    try:
        return AuditAction(entry.get(fields.ACTION))
    except ValueError:
        return None
