"""SQLAlchemy session bridge feeding flush results into an ``AuditRecorder``.

The listener runs in ``after_flush``, when primary keys for inserted rows are
assigned but attribute history still describes the pre-flush state. Commits
expire loaded attributes by default, and a value assigned over an expired
attribute carries no prior value in its history; ``before_flush`` therefore
reads the stored row for such audited instances before it is overwritten.

Soft deletes are ordinary updates to SQLAlchemy, so a mapped class opts in
with ``__audit_soft_delete__`` and transitions of that column are reported as
deletions or restorations instead of updates.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    event,
    inspect,
    select,
)
from sqlalchemy.orm import Mapper, Session
from sqlalchemy.orm.state import InstanceState

from .entity import DEFAULT_SOFT_DELETE_COLUMN, EntitySnapshot
from .logging import get_logger
from .policy import entity_type_of
from .recorder import AuditRecorder

_LOGGER = get_logger(__name__)

CommittedValues = dict[str, Any]


class AuditSessionListener:
    """Translate SQLAlchemy flushes into recorder notifications."""

    def __init__(self, recorder: AuditRecorder) -> None:
        self.recorder = recorder
        self._casts: dict[Mapper[Any], dict[str, str]] = {}
        self._info_key = f"audit_trail.committed.{id(self)}"

    def install(self, target: Any = Session) -> None:
        """Listen on a ``Session`` class, instance or ``sessionmaker``."""
        event.listen(target, "before_flush", self._before_flush)
        event.listen(target, "after_flush", self._after_flush)

    def remove(self, target: Any = Session) -> None:
        """Stop listening on a previously installed target."""
        event.remove(target, "before_flush", self._before_flush)
        event.remove(target, "after_flush", self._after_flush)

    def capture_committed(
        self, session: Session
    ) -> dict[InstanceState[Any], CommittedValues]:
        """Read stored rows for audited instances lacking in-memory originals."""
        committed: dict[InstanceState[Any], CommittedValues] = {}
        for obj in [*session.dirty, *session.deleted]:
            state: InstanceState[Any] = inspect(obj)
            if state.key is None or state in committed or not self._audited(obj):
                continue
            if _needs_committed(state):
                committed[state] = _load_committed(session, state)
        return committed

    def dispatch(
        self,
        session: Session,
        committed: dict[InstanceState[Any], CommittedValues] | None = None,
    ) -> None:
        """Notify the recorder about every pending change in ``session``."""
        committed = committed or {}

        for obj in list(session.new):
            if self._audited(obj):
                self.recorder.on_created(self.snapshot(obj))

        for obj in list(session.dirty):
            if self._audited(obj):
                self._dispatch_dirty(obj, committed.get(inspect(obj)))

        for obj in list(session.deleted):
            if self._audited(obj):
                snapshot = self.snapshot(obj, committed.get(inspect(obj)))
                self.recorder.on_deleted(snapshot)

    def snapshot(
        self, obj: object, committed: CommittedValues | None = None
    ) -> EntitySnapshot:
        """Build an ``EntitySnapshot`` from an instance's current state.

        ``committed`` supplies stored values for attributes that are not
        loaded or whose history lost the value they replaced.
        """
        committed = committed or {}
        state: InstanceState[Any] = inspect(obj)
        mapper = state.mapper

        attributes: dict[str, Any] = {}
        original: dict[str, Any] = {}
        changed: list[str] = []
        for attr in mapper.column_attrs:
            key = attr.key
            if key in state.dict:
                current = state.dict[key]
            else:
                current = committed.get(key)
            attributes[key] = current
            history = state.attrs[key].history
            if state.key is not None and history.has_changes():
                changed.append(key)
                if history.deleted:
                    original[key] = history.deleted[0]
                else:
                    original[key] = committed.get(key)
            else:
                original[key] = current

        soft_delete_column = soft_delete_column_of(mapper.class_)
        return EntitySnapshot(
            entity_type=entity_type_of(mapper.class_),
            key=_identity(state),
            attributes=attributes,
            original=original,
            changed=tuple(changed),
            casts=self._casts_for(mapper),
            supports_soft_delete=soft_delete_column is not None,
            soft_delete_column=soft_delete_column or DEFAULT_SOFT_DELETE_COLUMN,
        )

    def _before_flush(
        self, session: Session, flush_context: Any, instances: Any
    ) -> None:
        del flush_context, instances
        try:
            session.info[self._info_key] = self.capture_committed(session)
        except Exception as exc:
            session.info.pop(self._info_key, None)
            _LOGGER.warning("Audit committed-state capture failed: %s", exc)

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        del flush_context
        committed = session.info.pop(self._info_key, None)
        try:
            self.dispatch(session, committed)
        except Exception as exc:
            _LOGGER.warning("Audit session listener failed: %s", exc)

    def _audited(self, obj: object) -> bool:
        return self.recorder.registry.is_audited(type(obj))

    def _dispatch_dirty(
        self, obj: object, committed: CommittedValues | None = None
    ) -> None:
        snapshot = self.snapshot(obj, committed)
        column = snapshot.soft_delete_column
        if snapshot.supports_soft_delete and column in snapshot.changed:
            was_deleted = snapshot.original.get(column) is not None
            if not was_deleted and snapshot.is_soft_deleted:
                self.recorder.on_deleted(snapshot)
                return
            if was_deleted and not snapshot.is_soft_deleted:
                self.recorder.on_restored(snapshot)
                return
        self.recorder.on_updated(snapshot)

    def _casts_for(self, mapper: Mapper[Any]) -> dict[str, str]:
        casts = self._casts.get(mapper)
        if casts is None:
            casts = column_casts(mapper)
            self._casts[mapper] = casts
        return casts


def column_casts(mapper: Mapper[Any]) -> dict[str, str]:
    """Return field casts for a mapper, honoring ``__audit_casts__``."""
    declared = getattr(mapper.class_, "__audit_casts__", None)
    if declared is not None:
        return dict(declared)

    casts: dict[str, str] = {}
    for attr in mapper.column_attrs:
        cast = _cast_for_type(attr.columns[0].type)
        if cast is not None:
            casts[attr.key] = cast
    return casts


def soft_delete_column_of(cls: type) -> str | None:
    """Return the soft-delete column declared on a mapped class, if any."""
    declared = getattr(cls, "__audit_soft_delete__", None)
    if declared is True:
        return DEFAULT_SOFT_DELETE_COLUMN
    if isinstance(declared, str) and declared:
        return declared
    return None


def _cast_for_type(column_type: Any) -> str | None:
    # Order matters: Float subclasses Numeric and Enum subclasses String.
    if isinstance(column_type, Boolean):
        return "boolean"
    if isinstance(column_type, Integer):
        return "integer"
    if isinstance(column_type, Float):
        return "float"
    if isinstance(column_type, (Numeric, Enum)):
        return None
    if isinstance(column_type, String):
        return "string"
    if isinstance(column_type, JSON):
        return "json"
    return None


def _needs_committed(state: InstanceState[Any]) -> bool:
    unloaded = state.unloaded
    for attr in state.mapper.column_attrs:
        if attr.key in unloaded:
            return True
        history = state.attrs[attr.key].history
        if history.added and not history.deleted:
            return True
    return False


def _load_committed(session: Session, state: InstanceState[Any]) -> CommittedValues:
    mapper = state.mapper
    attrs = list(mapper.column_attrs)
    statement = select(*(attr.columns[0] for attr in attrs)).where(
        *(
            column == value
            for column, value in zip(mapper.primary_key, state.key[1])
        )
    )
    # Core execution on the session's connection does not autoflush.
    connection = session.connection(bind_arguments={"mapper": mapper})
    row = connection.execute(statement).first()
    if row is None:
        return {}
    return {attr.key: value for attr, value in zip(attrs, row)}


def _identity(state: InstanceState[Any]) -> Any:
    if state.key is not None:
        key = state.key[1]
    else:
        key = state.mapper.primary_key_from_instance(state.obj())
    if len(key) == 1:
        return key[0]
    return tuple(key)
