"""Decide whether audit recording is active for the current process."""

from __future__ import annotations

from collections.abc import Collection

WILDCARD = "*"


def should_log(
    enabled: bool, environments: Collection[str], current_environment: str
) -> bool:
    """Return True when auditing is enabled and allowed in this environment.

    Both the global switch and the environment allowlist must pass. An
    allowlist of exactly ``["*"]`` admits every environment.
    """
    if not enabled:
        return False
    if set(environments) == {WILDCARD}:
        return True
    return current_environment in environments
