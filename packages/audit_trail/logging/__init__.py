"""Logging helpers for the audit trail.

Diagnostics from the recorder go through Python's ``logging`` hierarchy like
any other library. Formatted audit entries travel on a dedicated channel
logger configured with ``configure_channel``.
"""

from .config import (
    configure_channel,
    configure_logging,
    diagnostic_fields,
    get_logger,
)

__all__ = [
    "configure_channel",
    "configure_logging",
    "diagnostic_fields",
    "get_logger",
]
