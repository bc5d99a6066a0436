"""In-memory recorder double for asserting on audit entries in tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from threading import Lock
from typing import Any

from . import fields
from .actions import AuditAction
from .config import AuditSettings
from .entity import EntitySnapshot
from .gate import should_log
from .policy import PolicyRegistry, entity_type_of
from .providers import ContextProvider
from .recorder import AuditRecorder

TESTING_ENVIRONMENT = "testing"

EntryPredicate = Callable[[dict[str, Any]], bool]


class FakeAuditRecorder(AuditRecorder):
    """Recorder that captures assembled entries instead of writing them.

    Entries run through the same gate, policy and changeset pipeline as the
    production recorder. ``entity_types`` restricts capture to the named
    entity classes or identifiers.
    """

    def __init__(
        self,
        *,
        registry: PolicyRegistry,
        entity_types: Iterable[object] | None = None,
        settings: AuditSettings | None = None,
        providers: Sequence[ContextProvider] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(
            settings=settings
            or AuditSettings(
                enabled=True,
                environments=[TESTING_ENVIRONMENT],
                environment=TESTING_ENVIRONMENT,
            ),
            registry=registry,
            providers=providers,
            **kwargs,
        )
        self.entity_types: frozenset[str] | None = (
            None
            if entity_types is None
            else frozenset(entity_type_of(item) for item in entity_types)
        )
        self._entries: list[dict[str, Any]] = []
        self._entries_lock = Lock()

    def build_entry(
        self, action: AuditAction, snapshot: EntitySnapshot
    ) -> dict[str, Any] | None:
        restricted = self.entity_types is not None
        if restricted and snapshot.entity_type not in self.entity_types:
            return None
        return super().build_entry(action, snapshot)

    def emit(self, entry: dict[str, Any]) -> None:
        """Capture the entry in memory."""
        with self._entries_lock:
            self._entries.append(entry)

    def should_log(self) -> bool:
        """Gate like production, treating an empty allowlist as ``testing``."""
        return should_log(
            self.settings.enabled,
            self.settings.environments or [TESTING_ENVIRONMENT],
            self.settings.environment,
        )

    def all(self) -> list[dict[str, Any]]:
        """Return every captured entry in emission order."""
        with self._entries_lock:
            return list(self._entries)

    def logged(
        self,
        action: AuditAction | None = None,
        entity_type: object | None = None,
    ) -> list[dict[str, Any]]:
        """Return captured entries filtered by action and/or entity type."""
        wanted_type = None if entity_type is None else entity_type_of(entity_type)
        return [
            entry
            for entry in self.all()
            if (action is None or entry.get(fields.ACTION) == action.value)
            and (wanted_type is None or entry.get(fields.ENTITY_TYPE) == wanted_type)
        ]

    def clear(self) -> None:
        """Drop all captured entries."""
        with self._entries_lock:
            self._entries.clear()

    def assert_logged(
        self, action: AuditAction, callback: EntryPredicate | None = None
    ) -> None:
        """Assert at least one ``action`` entry exists, optionally matching."""
        matching = self.logged(action)
        if not matching:
            raise AssertionError(
                f"Expected [{action.value}] audit entry was not logged."
            )
        if callback is not None and not any(callback(entry) for entry in matching):
            raise AssertionError(
                f"Expected [{action.value}] audit entry with matching callback "
                "was not logged."
            )

    def assert_not_logged(
        self, action: AuditAction, callback: EntryPredicate | None = None
    ) -> None:
        """Assert no ``action`` entry exists, optionally among matching ones."""
        matching = self.logged(action)
        if callback is not None:
            matching = [entry for entry in matching if callback(entry)]
        if matching:
            raise AssertionError(f"Unexpected [{action.value}] audit entry was logged.")

    def assert_logged_count(self, count: int) -> None:
        """Assert the total number of captured entries."""
        actual = len(self.all())
        if actual != count:
            raise AssertionError(
                f"Expected {count} audit entries to be logged, found {actual}."
            )

    def assert_nothing_logged(self) -> None:
        """Assert that no entries were captured."""
        if self.all():
            raise AssertionError("Unexpected audit entries were logged.")
