"""Unit tests for the in-memory fake recorder."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from packages.audit_trail.actions import AuditAction
from packages.audit_trail.config import AuditSettings
from packages.audit_trail.entity import EntitySnapshot
from packages.audit_trail.policy import AuditPolicy, PolicyRegistry
from packages.audit_trail.testing import FakeAuditRecorder


class User:
    __audit_entity_type__ = "app.User"


class Post:
    __audit_entity_type__ = "app.Post"


def _registry() -> PolicyRegistry:
    return PolicyRegistry(
        {"app.User": AuditPolicy(), "app.Post": AuditPolicy(redact=frozenset({"body"}))}
    )


def _snapshot(entity_type: str, key: int = 1, **attributes: Any) -> EntitySnapshot:
    return EntitySnapshot(entity_type=entity_type, key=key, attributes=attributes)


def test_fake_captures_entries_without_sink() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.on_created(_snapshot("app.User", name="John"))

    entries = fake.all()
    assert len(entries) == 1
    assert entries[0]["action"] == "created"
    assert entries[0]["changes"] == {"name": "John"}


def test_fake_applies_policy_pipeline() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.on_created(_snapshot("app.Post", title="Hi", body="secret"))
    fake.on_created(_snapshot("app.Comment", text="ignored"))

    assert fake.all()[0]["changes"] == {"title": "Hi", "body": "[REDACTED]"}
    fake.assert_logged_count(1)


def test_logged_filters_by_action_and_entity_type() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.on_created(_snapshot("app.User", name="John"))
    fake.on_created(_snapshot("app.Post", title="Hi"))
    fake.on_deleted(_snapshot("app.User", name="John"))

    assert len(fake.logged(AuditAction.CREATED)) == 2
    assert len(fake.logged(entity_type=User)) == 2
    assert len(fake.logged(AuditAction.CREATED, "app.Post")) == 1
    assert fake.logged(AuditAction.RESTORED) == []


def test_assert_logged_with_callback() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.on_created(_snapshot("app.User", key=7, name="John"))

    fake.assert_logged(AuditAction.CREATED)
    fake.assert_logged(AuditAction.CREATED, lambda entry: entry["entity_id"] == 7)
    with pytest.raises(AssertionError, match="matching callback"):
        fake.assert_logged(AuditAction.CREATED, lambda entry: entry["entity_id"] == 8)
    with pytest.raises(AssertionError, match=r"\[deleted\]"):
        fake.assert_logged(AuditAction.DELETED)


def test_assert_not_logged() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.on_created(_snapshot("app.User", key=7, name="John"))

    fake.assert_not_logged(AuditAction.DELETED)
    fake.assert_not_logged(AuditAction.CREATED, lambda entry: entry["entity_id"] == 8)
    with pytest.raises(AssertionError, match="Unexpected"):
        fake.assert_not_logged(AuditAction.CREATED)


def test_assert_logged_count_and_nothing_logged() -> None:
    fake = FakeAuditRecorder(registry=_registry())

    fake.assert_nothing_logged()
    fake.on_created(_snapshot("app.User", name="John"))

    with pytest.raises(AssertionError, match="Expected 2 audit entries"):
        fake.assert_logged_count(2)
    with pytest.raises(AssertionError):
        fake.assert_nothing_logged()


def test_clear_drops_captured_entries() -> None:
    fake = FakeAuditRecorder(registry=_registry())
    fake.on_created(_snapshot("app.User", name="John"))

    fake.clear()

    fake.assert_nothing_logged()


def test_entity_types_restriction() -> None:
    fake = FakeAuditRecorder(registry=_registry(), entity_types=[Post])

    fake.on_created(_snapshot("app.User", name="John"))
    fake.on_created(_snapshot("app.Post", title="Hi"))

    assert [entry["entity_type"] for entry in fake.all()] == ["app.Post"]


def test_empty_environments_default_to_testing() -> None:
    settings = AuditSettings(enabled=True, environments=[], environment="testing")
    fake = FakeAuditRecorder(registry=_registry(), settings=settings)

    fake.on_created(_snapshot("app.User", name="John"))

    fake.assert_logged_count(1)


def test_fake_respects_disabled_gate() -> None:
    settings = AuditSettings(enabled=False, environments=["*"], environment="testing")
    fake = FakeAuditRecorder(registry=_registry(), settings=settings)

    fake.on_created(_snapshot("app.User", name="John"))

    fake.assert_nothing_logged()


def test_concurrent_emission_captures_every_entry() -> None:
    fake = FakeAuditRecorder(registry=_registry())
    total = 200

    def _create(key: int) -> bool:
        return fake.on_created(_snapshot("app.User", key=key, name=f"user-{key}"))

    with ThreadPoolExecutor(max_workers=8) as pool:
        emitted = list(pool.map(_create, range(total)))

    assert all(emitted)
    fake.assert_logged_count(total)
    assert sorted(entry["entity_id"] for entry in fake.all()) == list(range(total))
