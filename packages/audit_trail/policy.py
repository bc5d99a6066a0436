"""Per-entity-type audit policies and the registry that resolves them.

Policies are declared explicitly, either as ``AuditPolicy`` values or as raw
mappings loaded from configuration, and are static for the process lifetime.
Resolution is cached per entity type, including negative results, so the
recorder can look a policy up on every mutation without re-validating.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Final, Union

from .actions import ALL_ACTIONS, AuditAction
from .errors import (
    AuditFailure,
    ErrorReporter,
    FailureStage,
    PolicyDeclarationError,
)
from .logging import diagnostic_fields, get_logger

_LOGGER = get_logger(__name__)

_DECLARATION_KEYS: Final[frozenset[str]] = frozenset(
    {"columns", "exclude", "redact", "events", "with_original"}
)

PolicyDeclaration = Union["AuditPolicy", Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class AuditPolicy:
    """Audit rules for one entity type.

    ``columns`` limits auditing to the named fields (``None`` means all),
    ``exclude`` always drops fields, ``redact`` reports that a field changed
    without revealing its value, ``events`` selects which actions produce
    entries, and ``with_original`` keeps prior values on updates.
    """

    columns: frozenset[str] | None = None
    exclude: frozenset[str] = frozenset()
    redact: frozenset[str] = frozenset()
    events: frozenset[AuditAction] = field(
        default_factory=lambda: frozenset(ALL_ACTIONS)
    )
    with_original: bool = True

    def tracks(self, action: AuditAction) -> bool:
        """Return True when ``action`` should produce an entry."""
        return action in self.events

    @classmethod
    def from_mapping(cls, declaration: Mapping[str, Any]) -> AuditPolicy:
        """Build a policy from a configuration mapping.

        Raises ``PolicyDeclarationError`` for unknown keys, unknown event names
        or values of the wrong shape.
        """
        if not isinstance(declaration, Mapping):
            raise PolicyDeclarationError(
                "policy declaration must be a mapping, "
                f"got {type(declaration).__name__}"
            )
        unknown = sorted(set(declaration) - _DECLARATION_KEYS)
        if unknown:
            raise PolicyDeclarationError(f"unknown policy keys: {unknown}")

        columns = declaration.get("columns")
        with_original = declaration.get("with_original", True)
        if not isinstance(with_original, bool):
            raise PolicyDeclarationError("with_original must be a boolean")

        events = declaration.get("events")
        return cls(
            columns=None if columns is None else _names(columns, "columns"),
            exclude=_names(declaration.get("exclude", ()), "exclude"),
            redact=_names(declaration.get("redact", ()), "redact"),
            events=frozenset(ALL_ACTIONS) if events is None else _actions(events),
            with_original=with_original,
        )


def entity_type_of(target: object) -> str:
    """Return the registry identifier for an entity class, instance or name.

    Classes may override the default ``module.QualName`` identifier with an
    ``__audit_entity_type__`` attribute.
    """
    if isinstance(target, str):
        return target
    cls = target if isinstance(target, type) else type(target)
    override = getattr(cls, "__audit_entity_type__", None)
    if isinstance(override, str) and override:
        return override
    return f"{cls.__module__}.{cls.__qualname__}"


class PolicyRegistry:
    """Explicit entity-type -> policy registry with a resolution cache."""

    def __init__(
        self,
        declarations: Mapping[str, PolicyDeclaration] | None = None,
        *,
        on_error: ErrorReporter | None = None,
    ) -> None:
        self._declarations: dict[str, PolicyDeclaration] = {}
        self._cache: dict[str, AuditPolicy | None] = {}
        self._lock = Lock()
        self._on_error = on_error
        for entity_type, declaration in (declarations or {}).items():
            self.register(entity_type, declaration)

    @classmethod
    def from_settings(
        cls,
        policies: Mapping[str, Any],
        *,
        on_error: ErrorReporter | None = None,
    ) -> PolicyRegistry:
        """Build a registry from the ``policies`` configuration section."""
        return cls(declarations=policies, on_error=on_error)

    def register(
        self, entity: object, declaration: PolicyDeclaration | None = None
    ) -> None:
        """Declare the policy for one entity type.

        ``declaration`` defaults to an all-columns, all-events policy. A type
        cannot be re-declared once it has been resolved.
        """
        entity_type = entity_type_of(entity)
        with self._lock:
            if entity_type in self._cache:
                raise PolicyDeclarationError(
                    f"policy for {entity_type} already resolved",
                    entity_type=entity_type,
                )
            self._declarations[entity_type] = (
                AuditPolicy() if declaration is None else declaration
            )

    def resolve(self, entity: object) -> AuditPolicy | None:
        """Return the policy for an entity type, or None if it is not audited."""
        entity_type = entity_type_of(entity)
        try:
            return self._cache[entity_type]
        except KeyError:
            pass

        policy = self._build(entity_type)
        with self._lock:
            return self._cache.setdefault(entity_type, policy)

    def is_audited(self, entity: object) -> bool:
        """Return True when the entity type resolves to a policy."""
        return self.resolve(entity) is not None

    def entity_types(self) -> tuple[str, ...]:
        """Return declared entity types in registration order."""
        return tuple(self._declarations)

    def _build(self, entity_type: str) -> AuditPolicy | None:
        declaration = self._declarations.get(entity_type)
        if declaration is None or isinstance(declaration, AuditPolicy):
            return declaration
        try:
            return AuditPolicy.from_mapping(declaration)
        except PolicyDeclarationError as exc:
            _LOGGER.warning(
                "Ignoring malformed audit policy for %s: %s",
                entity_type,
                exc,
                extra=diagnostic_fields(entity_type, stage=FailureStage.POLICY),
            )
            self._report(
                AuditFailure(
                    stage=FailureStage.POLICY,
                    entity_type=entity_type,
                    action=None,
                    exception=exc,
                )
            )
            return None

    def _report(self, failure: AuditFailure) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(failure)
        except Exception:
            _LOGGER.debug("Audit error reporter failed", exc_info=True)


def _names(value: Any, label: str) -> frozenset[str]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise PolicyDeclarationError(f"{label} must be a list of field names")
    names = tuple(value)
    if not all(isinstance(name, str) and name for name in names):
        raise PolicyDeclarationError(f"{label} must contain non-empty strings")
    return frozenset(names)


def _actions(value: Any) -> frozenset[AuditAction]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise PolicyDeclarationError("events must be a list of action names")
    actions: set[AuditAction] = set()
    for item in value:
        try:
            actions.add(
                item
                if isinstance(item, AuditAction)
                else AuditAction(str(item).strip().lower())
            )
        except ValueError as exc:
            raise PolicyDeclarationError(f"unknown audit event: {item!r}") from exc
    return frozenset(actions)
