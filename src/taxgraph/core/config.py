"""
Engine settings and loading.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class LoggingSettings(BaseModel):
    """Logging output configuration.

    Example YAML:
        logging:
          level: DEBUG
          json_output: true
    """

    model_config = {"frozen": True, "extra": "forbid"}

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        normalized = v.upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"level must be one of {sorted(_LOG_LEVELS)}, got {v!r}")
        return normalized


class EngineSettings(BaseModel):
    """Top-level settings for a TaxGraphEngine.

    Example YAML:
        record_state_hash: true
        strict_dependency_access: true
        logging:
          level: INFO
    """

    model_config = {"frozen": True, "extra": "forbid"}

    record_state_hash: bool = Field(
        default=True,
        description="Attach a SHA-256 of the canonical new state to every trace frame",
    )
    strict_dependency_access: bool = Field(
        default=True,
        description="Mark a node as errored when its rule reads an undeclared dependency",
    )
    verify_session_shape: bool = Field(
        default=True,
        description="Reject prior states whose node set does not match the session's materialization",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: Path) -> EngineSettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (TAXGRAPH_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: TAXGRAPH_LOGGING__LEVEL for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="TAXGRAPH",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return EngineSettings(**raw_config)


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value
