"""Custom exceptions for gpuwatch.

This module defines a hierarchy of exceptions used throughout gpuwatch
to provide meaningful error messages and enable proper error handling.

Discovery-time errors (missing SSH config, no hosts, nothing left after
filtering) are fatal for the run. Per-host transport errors are caught by
the poller and shown in that host's status column instead.

Exception Hierarchy:
    GpuWatchError (base)
    ├── ConfigurationError
    │   ├── ConfigNotFoundError
    │   │   └── NoHostsFoundError
    │   └── NoActiveHostsError
    └── SSHConnectionError
        ├── SSHAuthenticationError
        ├── SSHTimeoutError
        └── SSHCommandTimeoutError
"""

from __future__ import annotations

from typing import Any


class GpuWatchError(Exception):
    """Base exception for all gpuwatch errors.

    Args:
        message: Human-readable error message.
        details: Optional dictionary with additional error context.

    Attributes:
        message: The error message.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(GpuWatchError):
    """Raised when there is a configuration-related error.

    Examples:
        - Invalid YAML syntax in the settings file
        - Settings values out of range
    """


class ConfigNotFoundError(ConfigurationError):
    """Raised when the SSH config file cannot be found or read.

    Args:
        path: The path where the config was expected.
        reason: Optional explanation appended to the message.
    """

    def __init__(self, path: str, reason: str | None = None) -> None:
        message = f"SSH config not found: {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path


class NoHostsFoundError(ConfigNotFoundError):
    """Raised when the SSH config and its includes define no usable hosts.

    Args:
        path: The root config path that was scanned.
        files_scanned: Number of config files visited.
    """

    def __init__(self, path: str, files_scanned: int = 1) -> None:
        ConfigurationError.__init__(
            self,
            f"No Host entries found in {path}",
            details={"files_scanned": files_scanned},
        )
        self.path = path
        self.files_scanned = files_scanned


class NoActiveHostsError(ConfigurationError):
    """Raised when no hosts are left to poll after filtering.

    Args:
        requested: The allow-list that matched nothing, if one was given.
    """

    def __init__(self, requested: list[str] | None = None) -> None:
        details = {"requested": ",".join(requested)} if requested else None
        super().__init__("No hosts to monitor", details=details)
        self.requested = requested or []


class SSHConnectionError(GpuWatchError):
    """Raised when a host cannot be reached over SSH.

    Args:
        host: The host alias or address.
        message: Description of the connection failure.
    """

    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"ssh to '{host}' failed: {message}")
        self.host = host
        self.reason = message


class SSHAuthenticationError(SSHConnectionError):
    """Raised when SSH authentication fails.

    Args:
        host: The host alias or address.
        username: The username used for authentication.
    """

    def __init__(self, host: str, username: str | None = None) -> None:
        msg = "authentication failed"
        if username:
            msg = f"authentication failed for user '{username}'"
        super().__init__(host, msg)
        self.username = username


class SSHTimeoutError(SSHConnectionError):
    """Raised when an SSH connection times out.

    Args:
        host: The host alias or address.
        timeout: The timeout value in seconds.
    """

    def __init__(self, host: str, timeout: float) -> None:
        super().__init__(host, f"connection timed out after {timeout:g}s")
        self.timeout = timeout


class SSHCommandTimeoutError(SSHConnectionError):
    """Raised when a remote command exceeds its deadline.

    Args:
        host: The host alias or address.
        timeout: The command timeout in seconds.
    """

    def __init__(self, host: str, timeout: float) -> None:
        super().__init__(host, f"command timed out after {timeout:g}s")
        self.timeout = timeout
