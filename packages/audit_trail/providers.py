"""Pluggable context providers and the aggregator that merges their output."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from .actions import AuditAction
from .entity import EntitySnapshot
from .errors import AuditFailure, ErrorReporter, FailureStage
from .logging import diagnostic_fields, get_logger

_LOGGER = get_logger(__name__)


class ContextProvider(Protocol):
    """Source of extra key/value pairs merged into every audit entry."""

    def get_context(
        self, snapshot: EntitySnapshot, action: AuditAction
    ) -> Mapping[str, Any]:
        """Return context for one entry; an empty mapping adds nothing."""


def collect_context(
    providers: Sequence[ContextProvider],
    snapshot: EntitySnapshot,
    action: AuditAction,
    *,
    on_error: ErrorReporter | None = None,
) -> dict[str, Any]:
    """Call providers in order and merge results, later keys winning.

    A provider that raises, or returns something other than a mapping, is
    skipped without affecting the others.
    """
    merged: dict[str, Any] = {}
    for provider in providers:
        try:
            context = provider.get_context(snapshot, action)
            if not isinstance(context, Mapping):
                raise TypeError(
                    f"{type(provider).__name__}.get_context returned "
                    f"{type(context).__name__}, expected a mapping"
                )
        except Exception as exc:
            _LOGGER.warning(
                "Audit context provider %s failed for %s: %s",
                type(provider).__name__,
                snapshot.entity_type,
                exc,
                extra=diagnostic_fields(
                    snapshot.entity_type, action, FailureStage.CONTEXT
                ),
            )
            if on_error is not None:
                on_error(
                    AuditFailure(
                        stage=FailureStage.CONTEXT,
                        entity_type=snapshot.entity_type,
                        action=action,
                        exception=exc,
                    )
                )
            continue
        merged.update(context)
    return merged


class StaticContextProvider:
    """Provider returning the same mapping for every entry."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def get_context(
        self, snapshot: EntitySnapshot, action: AuditAction
    ) -> Mapping[str, Any]:
        del snapshot, action
        return dict(self._values)
