"""Typed configuration models for the audit trail."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "audit-trail" / "audit.yaml"


class LoggingSettings(BaseModel):
    """Diagnostic logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "audit-trail"


class AuditSettings(BaseSettings):
    """Root audit settings resolved from init/env/yaml/defaults sources.

    ``enabled`` and ``environments`` gate recording, ``environment`` names
    the running deployment, ``channel`` selects the sink logger,
    ``context_providers`` and ``formatter`` name startup-registered handlers,
    and ``policies`` declares per-entity-type audit rules.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
        yaml_file=DEFAULT_CONFIG_PATH,
        yaml_file_encoding="utf-8",
    )

    enabled: bool = False
    environments: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["local", "production", "staging"]
    )
    environment: str = "production"
    channel: str = Field(default="audit", min_length=1)
    context_providers: list[str] = Field(default_factory=list)
    static_context: dict[str, Any] = Field(default_factory=dict)
    formatter: str = Field(default="json", min_length=1)
    policies: dict[str, Any] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environments", mode="before")
    @classmethod
    def _split_environments(cls, value: object) -> object:
        """Accept a JSON list or a comma-separated string as well as a list.

        Environment values bypass the settings JSON decoding for this field,
        so ``AUDIT_ENVIRONMENTS='["*"]'`` and ``AUDIT_ENVIRONMENTS=local,staging``
        both arrive here as text.
        """
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [item.strip() for item in text.split(",") if item.strip()]
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Apply precedence: init > env > yaml > model defaults."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )
