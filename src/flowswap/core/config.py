# src/flowswap/core/config.py
"""
Configuration schema and loading for flowswap.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class RetryBudgetSettings(BaseModel):
    """Bounded polling budget.

    max_retries counts ADDITIONAL polls after the first one, so
    max_retries=3 means up to 4 polls with 3 pauses in between.
    """

    model_config = {"frozen": True}

    max_retries: int = Field(default=5, ge=0, description="Polls after the first before giving up")
    pause_seconds: float = Field(default=1.0, ge=0, description="Pause between polls")

    @property
    def worst_case_seconds(self) -> float:
        """Upper bound on time spent sleeping between polls."""
        return self.max_retries * self.pause_seconds


class DrainSettings(RetryBudgetSettings):
    """Graceful drain configuration.

    Example YAML:
        drain:
          max_retries: 60
          pause_seconds: 1.0
          transmission_stop_timeout_seconds: 10.0
    """

    max_retries: int = Field(default=60, ge=0, description="Queue polls after the first before forcing the drain")
    pause_seconds: float = Field(default=1.0, ge=0, description="Pause between queue polls")
    transmission_stop_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-endpoint wait for remote transmission to stop, in seconds",
    )


class ValidationSettings(RetryBudgetSettings):
    """Post-reload validation polling configuration."""

    max_retries: int = Field(default=5, ge=0, description="Validation polls after the first before failing the reload")
    pause_seconds: float = Field(default=1.0, ge=0, description="Pause between validation polls")


class FileSettings(BaseModel):
    """Where the active configuration lives and how backups are named.

    Example YAML:
        files:
          flow_configuration_file: ./conf/flow.json.gz
          backup_suffix: .backup
          raw_extension: .raw
    """

    model_config = {"frozen": True}

    flow_configuration_file: Path = Field(description="Active rendered flow configuration file")
    backup_suffix: str = Field(default=".backup", description="Suffix appended to backup copies")
    raw_extension: str = Field(default=".raw", description="Extension of the raw (unrendered) configuration")

    @field_validator("backup_suffix", "raw_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2 or "/" in v:
            raise ValueError(f"must be a file extension starting with '.', got {v!r}")
        return v


class HistorySettings(BaseModel):
    """Update history (audit) store configuration."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=False, description="Record every update attempt")
    url: str = Field(
        default="sqlite:///./state/flowswap.db",
        description="SQLAlchemy connection URL",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        from sqlalchemy.engine.url import make_url

        try:
            make_url(v)
        except Exception as e:
            raise ValueError(f"Invalid database URL: {e}") from e
        return v


class LoggingSettings(BaseModel):
    """Logging output configuration.

    Example YAML:
        logging:
          level: DEBUG
          json_output: true
          scope: flowswap      # leave the host runtime's logging alone
          stream: stderr
    """

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False
    scope: Literal["root", "flowswap"] = Field(
        default="root",
        description="root: format every logger in the process; flowswap: only the flowswap logger tree",
    )
    stream: Literal["stdout", "stderr"] = "stdout"


class FlowswapSettings(BaseModel):
    """Top-level flowswap configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    files: FileSettings = Field(description="Active configuration file layout")
    drain: DrainSettings = Field(
        default_factory=DrainSettings,
        description="Graceful drain budget",
    )
    validation: ValidationSettings = Field(
        default_factory=ValidationSettings,
        description="Post-reload validation budget",
    )
    history: HistorySettings = Field(
        default_factory=HistorySettings,
        description="Update history store",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging output",
    )


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original so validation reports it
            return match.group(0)

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
    """Dynaconf upper-cases keys at every level; Pydantic fields are lowercase."""
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lowercase_keys(item) for item in value]
    return value


def load_settings(config_path: Path) -> FlowswapSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (FLOWSWAP_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: FLOWSWAP_DRAIN__MAX_RETRIES for nested keys.

    Relative flow_configuration_file paths are resolved against the
    directory holding the settings file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated FlowswapSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="FLOWSWAP",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lowercase_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    files = raw_config.get("files")
    if isinstance(files, dict) and "flow_configuration_file" in files:
        flow_path = Path(str(files["flow_configuration_file"]))
        if not flow_path.is_absolute():
            flow_path = (config_path.parent / flow_path).resolve()
        raw_config["files"] = {**files, "flow_configuration_file": flow_path}

    return FlowswapSettings(**raw_config)
