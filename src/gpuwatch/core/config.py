"""Settings management for gpuwatch.

This module provides a Pydantic-based settings system that supports:
- An optional YAML settings file with dashboard defaults
- Command-line overrides on top of the file
- Validation of every value

The default settings location is ~/.gpuwatch/config.yaml, which can be
overridden with the GPUWATCH_CONFIG environment variable. The file is
optional; without it the built-in defaults apply.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from gpuwatch.core.exceptions import ConfigurationError
from gpuwatch.core.ssh_config import DEFAULT_SSH_CONFIG
from gpuwatch.models.gpu import DEFAULT_GPU_QUERY
from gpuwatch.utils.output import OutputFormat


def get_default_settings_path() -> Path:
    """Get the default settings file path.

    The path can be overridden by setting the GPUWATCH_CONFIG
    environment variable.

    Returns:
        Path to the settings file.
    """
    env_path = os.environ.get("GPUWATCH_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".gpuwatch" / "config.yaml"


class LoggingConfig(BaseModel):
    """Logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        file: Path to log file (optional).
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class WatchSettings(BaseModel):
    """Dashboard settings.

    Args:
        ssh_config: SSH client config to discover hosts from.
        interval: Seconds between refreshes.
        connect_timeout: SSH connect timeout in seconds.
        command_timeout: Deadline for the remote command, None to disable.
        concurrency: Maximum number of simultaneous SSH sessions.
        hosts: Optional allow-list of host aliases.
        remote_command: Command that prints one CSV line per GPU.
        identity_file: Private key to try first.
        ssh_options: Extra ``-o`` style options.
        once: Render a single refresh and exit.
        output_format: table, json or yaml.
    """

    ssh_config: str = Field(default=DEFAULT_SSH_CONFIG, description="SSH config path")
    interval: Annotated[float, Field(ge=0)] = Field(default=5.0, description="Refresh interval")
    connect_timeout: Annotated[int, Field(ge=1, le=3600)] = Field(
        default=10, description="SSH connect timeout in seconds"
    )
    command_timeout: Annotated[float, Field(gt=0)] | None = Field(
        default=30.0, description="Remote command deadline in seconds"
    )
    concurrency: Annotated[int, Field(ge=1, le=1024)] = Field(
        default=8, description="Concurrent SSH sessions"
    )
    hosts: list[str] = Field(default_factory=list, description="Host allow-list")
    remote_command: Annotated[str, Field(min_length=1)] = Field(
        default=DEFAULT_GPU_QUERY, description="Remote GPU query"
    )
    identity_file: str | None = Field(default=None, description="SSH private key")
    ssh_options: list[str] = Field(default_factory=list, description="Extra ssh -o options")
    once: bool = Field(default=False, description="Run a single refresh")
    output_format: OutputFormat = Field(default=OutputFormat.TABLE, description="Output format")

    @field_validator("hosts", mode="before")
    @classmethod
    def split_hosts(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("identity_file")
    @classmethod
    def expand_identity_file(cls, v: str | None) -> str | None:
        """Expand ~ in the identity file path."""
        if v is not None:
            return str(Path(v).expanduser())
        return v

    def transport_options(self) -> list[str]:
        """Extra options handed to the transport for every call.

        The identity file comes first so that an explicit ``-o
        IdentityFile=...`` still takes precedence over it.
        """
        options: list[str] = []
        if self.identity_file:
            options.append(f"IdentityFile={self.identity_file}")
        options.extend(self.ssh_options)
        return options


class Settings(BaseModel):
    """Main settings model for gpuwatch.

    Args:
        watch: Dashboard settings.
        logging: Logging configuration.

    Example config.yaml:
        ```yaml
        watch:
          ssh_config: ~/.ssh/config
          interval: 5
          connect_timeout: 10
          concurrency: 8
          hosts: [gpu-a100-1, gpu-a100-2]
          ssh_options:
            - StrictHostKeyChecking=no

        logging:
          level: INFO
          file: ~/.gpuwatch/logs/gpuwatch.log
        ```
    """

    watch: WatchSettings = Field(default_factory=WatchSettings, description="Dashboard settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging config")


class SettingsManager:
    """Loads gpuwatch settings and applies command-line overrides.

    Args:
        path: Optional path to the settings file. Uses default if not
            specified.

    Attributes:
        path: Path to the settings file.
        settings: The loaded and validated Settings object.

    Example:
        >>> sm = SettingsManager()
        >>> watch = sm.resolve(interval=2, once=True)
        >>> watch.interval
        2.0
    """

    def __init__(self, path: Path | str | None = None) -> None:
        if path is None:
            self.path = get_default_settings_path()
        else:
            self.path = Path(path).expanduser()

        self.settings = self._load_or_default()

    def _load_or_default(self) -> Settings:
        if self.path.exists():
            return self._load()
        return Settings()

    def _load(self) -> Settings:
        """Load and validate settings from file.

        Returns:
            Validated Settings object.

        Raises:
            ConfigurationError: If the file is not valid YAML or holds
                invalid values.
        """
        try:
            with self.path.open("r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in settings file: {e}",
                details={"path": str(self.path)},
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read settings: {e}",
                details={"path": str(self.path)},
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Settings file must contain a mapping",
                details={"path": str(self.path)},
            )

        try:
            return Settings.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid settings: {e}",
                details={"path": str(self.path)},
            ) from e

    def resolve(self, **overrides: Any) -> WatchSettings:
        """Merge command-line values over the file settings.

        Args:
            **overrides: Field values; ``None`` means "not given" and
                keeps the file (or default) value.

        Returns:
            Validated WatchSettings.

        Raises:
            ConfigurationError: If a merged value is invalid.
        """
        data = self.settings.watch.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return WatchSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid option: {e}") from e

    @property
    def logging(self) -> LoggingConfig:
        """Logging section of the settings."""
        return self.settings.logging
