"""Host models for gpuwatch.

This module defines the resolved connection parameters for an SSH alias,
built from ``paramiko.SSHConfig`` lookups plus ``-o`` style overrides.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator


def parse_ssh_options(options: list[str] | tuple[str, ...]) -> dict[str, str]:
    """Parse ``-o`` style options into a lowercase-keyed dictionary.

    Accepts both ``Key=Value`` and ``Key Value``. Later options win.
    Options without a value are ignored.

    Args:
        options: Raw option strings.

    Returns:
        Mapping of lowercase option names to values.

    Example:
        >>> parse_ssh_options(["User=ops", "Port 2222"])
        {'user': 'ops', 'port': '2222'}
    """
    parsed: dict[str, str] = {}
    for option in options:
        text = option.strip()
        if "=" in text:
            key, _, value = text.partition("=")
        else:
            key, _, value = text.partition(" ")
        key, value = key.strip().lower(), value.strip()
        if key and value:
            parsed[key] = value
    return parsed


class Host(BaseModel):
    """Connection parameters for one SSH alias.

    Args:
        name: The alias as written in the SSH config.
        hostname: Address to connect to (defaults to the alias).
        username: SSH username (paramiko falls back to the local user).
        port: SSH port number.
        identity_files: Private keys to try, in order.
        proxy_command: Optional ``ProxyCommand`` to tunnel through.
        strict_host_key_checking: Reject unknown host keys when True.

    Example:
        >>> host = Host(name="gpu-1", hostname="10.0.0.21", username="ops")
    """

    name: Annotated[str, Field(min_length=1, description="SSH alias")]
    hostname: Annotated[str, Field(min_length=1, description="IP address or hostname")]
    username: str | None = Field(default=None, description="SSH username")
    port: Annotated[int, Field(ge=1, le=65535)] = Field(default=22, description="SSH port")
    identity_files: list[str] = Field(default_factory=list, description="Private key paths")
    proxy_command: str | None = Field(default=None, description="ProxyCommand")
    strict_host_key_checking: bool = Field(
        default=False, description="Reject unknown host keys"
    )

    @field_validator("identity_files")
    @classmethod
    def expand_identity_paths(cls, v: list[str]) -> list[str]:
        """Expand ~ in identity file paths."""
        return [str(Path(p).expanduser()) for p in v]

    @property
    def display_name(self) -> str:
        """Human-readable display name for this host."""
        if self.hostname == self.name:
            return self.name
        return f"{self.name} ({self.hostname})"

    @classmethod
    def from_ssh_config(
        cls,
        name: str,
        options: dict[str, Any],
        overrides: dict[str, str] | None = None,
    ) -> Host:
        """Build a Host from a ``paramiko.SSHConfig.lookup`` result.

        Args:
            name: The alias that was looked up.
            options: The lookup result (lowercase keys).
            overrides: Parsed ``-o`` options taking precedence.

        Returns:
            Resolved Host.
        """
        merged: dict[str, Any] = dict(options)
        identity_files = list(merged.get("identityfile") or [])

        for key, value in (overrides or {}).items():
            if key == "identityfile":
                identity_files.insert(0, value)
            else:
                merged[key] = value

        proxy_command = merged.get("proxycommand")
        if proxy_command and proxy_command.lower() == "none":
            proxy_command = None

        return cls(
            name=name,
            hostname=merged.get("hostname") or name,
            username=merged.get("user"),
            port=int(merged.get("port", 22)),
            identity_files=identity_files,
            proxy_command=proxy_command,
            strict_host_key_checking=str(
                merged.get("stricthostkeychecking", "")
            ).lower() == "yes",
        )
