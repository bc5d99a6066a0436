"""Output channels that receive formatted audit entries."""

from __future__ import annotations

import logging
from typing import Protocol

DEFAULT_CHANNEL = "audit"


class AuditSink(Protocol):
    """Named output channel accepting one formatted entry at a time."""

    def write(self, message: str) -> None:
        """Write one formatted entry."""


class LoggingSink:
    """Write entries at INFO level to a named ``logging`` channel."""

    def __init__(self, channel: str = DEFAULT_CHANNEL) -> None:
        self.channel = channel
        self._logger = logging.getLogger(channel)

    def write(self, message: str) -> None:
        """Log the formatted entry on the configured channel."""
        self._logger.info(message)
