"""Startup wiring from settings to a ready ``AuditRecorder``.

Providers and formatters are named in configuration and resolved here, once,
against explicit name -> instance registries supplied by the host
application. Unknown names fail fast at startup rather than per event.
"""

from __future__ import annotations

from collections.abc import Mapping

from .config import AuditSettings
from .errors import ErrorReporter
from .formatters import AuditFormatter, JsonFormatter
from .logging import configure_logging
from .policy import PolicyRegistry
from .providers import ContextProvider, StaticContextProvider
from .recorder import AuditRecorder
from .sinks import AuditSink, LoggingSink

BUILTIN_FORMATTERS: Mapping[str, AuditFormatter] = {"json": JsonFormatter()}


def resolve_providers(
    names: list[str], available: Mapping[str, ContextProvider]
) -> tuple[ContextProvider, ...]:
    """Return providers for ``names`` in configured order."""
    missing = [name for name in names if name not in available]
    if missing:
        raise ValueError(f"unknown audit context providers: {missing}")
    return tuple(available[name] for name in names)


def resolve_formatter(
    name: str, available: Mapping[str, AuditFormatter] | None = None
) -> AuditFormatter:
    """Return the formatter registered under ``name``."""
    formatters = {**BUILTIN_FORMATTERS, **(available or {})}
    try:
        return formatters[name]
    except KeyError:
        raise ValueError(f"unknown audit formatter: {name!r}") from None


def build_recorder(
    settings: AuditSettings,
    *,
    providers: Mapping[str, ContextProvider] | None = None,
    formatters: Mapping[str, AuditFormatter] | None = None,
    registry: PolicyRegistry | None = None,
    sink: AuditSink | None = None,
    on_error: ErrorReporter | None = None,
) -> AuditRecorder:
    """Construct a recorder from settings and startup registries.

    ``static_context`` from settings, when present, runs as the first
    provider so named providers can override its keys.
    """
    resolved: list[ContextProvider] = []
    if settings.static_context:
        resolved.append(StaticContextProvider(settings.static_context))
    resolved.extend(resolve_providers(settings.context_providers, providers or {}))

    return AuditRecorder(
        settings=settings,
        registry=registry
        or PolicyRegistry.from_settings(settings.policies, on_error=on_error),
        providers=resolved,
        formatter=resolve_formatter(settings.formatter, formatters),
        sink=sink or LoggingSink(settings.channel),
        on_error=on_error,
    )


def configure_from_settings(settings: AuditSettings) -> None:
    """Apply the diagnostic logging section of ``settings``."""
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
    )
