"""Configuration loading with deterministic precedence.

The cascade is always:
1) CLI params
2) Environment variables
3) The YAML config file (``~/.config/audit-trail/audit.yaml`` by default)
4) Built-in defaults

Environment variable format:
- Prefix: ``AUDIT_``
- Nested keys: ``__`` separator
- List values: JSON, e.g. ``AUDIT_CONTEXT_PROVIDERS='["tenant"]'``;
  ``AUDIT_ENVIRONMENTS`` also takes a comma-separated list
- Example: ``AUDIT_LOGGING__LEVEL=DEBUG`` -> ``logging.level = "DEBUG"``
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import AuditSettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> AuditSettings:
    """Load audit settings by applying the standard precedence cascade."""
    params = dict(cli_params or {})
    if config_path is None:
        return AuditSettings(**params)

    class _FileAuditSettings(AuditSettings):
        model_config = SettingsConfigDict(yaml_file=Path(config_path))

    return _FileAuditSettings(**params)
