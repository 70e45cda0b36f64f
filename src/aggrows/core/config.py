# src/aggrows/core/config.py
"""
Configuration schema and loading for aggrows.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example YAML:
    response_key: aggregations
    output:
      format: jsonl
    logging:
      level: DEBUG
      json_output: true
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from aggrows.contracts.enums import LogLevel, OutputFormat


class LoggingSettings(BaseModel):
    """Log level and renderer for the CLI."""

    model_config = {"frozen": True}

    level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Root log level",
    )
    json_output: bool = Field(default=False, description="Render logs as JSON instead of console text")

    @field_validator("level", mode="before")
    @classmethod
    def uppercase_level(cls, v: Any) -> Any:
        """Accept level names in any case."""
        if isinstance(v, str):
            return v.upper()
        return v


class OutputSettings(BaseModel):
    """How flattened rows are written."""

    model_config = {"frozen": True}

    format: OutputFormat = Field(default=OutputFormat.JSON, description="json (one array) or jsonl (one row per line)")
    indent: int | None = Field(
        default=2,
        ge=0,
        description="Indentation for json output; None for compact. Ignored for jsonl.",
    )


class AggrowsSettings(BaseModel):
    """Top-level aggrows configuration.

    Every field has a default, so running without a settings file is the
    same as loading an empty one.
    """

    model_config = {"frozen": True}

    response_key: str | None = Field(
        default="aggregations",
        description="Response member holding the aggregations; null if the document is the aggregations object",
    )
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("response_key")
    @classmethod
    def validate_response_key_not_empty(cls, v: str | None) -> str | None:
        """An empty key can never match; use null for a bare aggregations document."""
        if v is not None and not v.strip():
            raise ValueError("response_key must be non-empty (use null for a bare aggregations document)")
        return v


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded

    Raises:
        ValueError: If a referenced environment variable is unset and has no default
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(f"Required environment variable '{var_name}' is not set")

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_keys(value: Any) -> Any:
    """Lowercase mapping keys at every level (Dynaconf uppercases them)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> AggrowsSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (AGGROWS_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: AGGROWS_OUTPUT__FORMAT for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated AggrowsSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
        ValueError: If a referenced environment variable is unset
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="AGGROWS",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lowercase_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return AggrowsSettings(**raw_config)
