"""Public API for audit trail configuration."""

from .loader import load_settings
from .models import DEFAULT_CONFIG_PATH, AuditSettings, LoggingSettings

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AuditSettings",
    "LoggingSettings",
    "load_settings",
]
