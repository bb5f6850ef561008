"""SSH transport with connection pooling.

This module provides the "run a command on host H" primitive the poller
depends on. It handles:
- Resolving SSH aliases through the same config files used for discovery
- ``-o`` style option overrides and identity files
- Connection pooling across refresh cycles
- A command deadline on top of the connect timeout
"""

from __future__ import annotations

import contextlib
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import paramiko
from paramiko.ssh_exception import ConfigParseError

from gpuwatch.core.exceptions import (
    SSHAuthenticationError,
    SSHCommandTimeoutError,
    SSHConnectionError,
    SSHTimeoutError,
)
from gpuwatch.models.host import Host, parse_ssh_options
from gpuwatch.utils.logging import get_logger

if TYPE_CHECKING:
    from gpuwatch.core.ssh_config import DiscoveryResult

logger = get_logger("ssh")


@dataclass
class SSHResult:
    """Result from an SSH command execution.

    Args:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        exit_code: Exit code of the command.
        host: Alias of the host where command ran.
        command: The command that was executed.

    Attributes:
        success: True if exit code is 0.
    """

    stdout: str
    stderr: str
    exit_code: int
    host: str
    command: str

    @property
    def success(self) -> bool:
        """Check if command succeeded (exit code 0)."""
        return self.exit_code == 0


@dataclass
class PooledConnection:
    """A pooled SSH connection with metadata.

    Args:
        client: The Paramiko SSH client.
        host: The Host this connection is for.
        created_at: Timestamp when connection was created.
    """

    client: paramiko.SSHClient
    host: Host
    created_at: float = field(default_factory=time.time)

    def is_active(self) -> bool:
        """Check if the connection is still active."""
        transport = self.client.get_transport()
        return transport is not None and transport.is_active()


class SSHManager:
    """Runs commands on SSH aliases, keeping one pooled connection per alias.

    The pool is shared by the poller's worker threads. Each alias is polled
    by a single worker per cycle, so a pooled client is never used by two
    threads at once; the lock only guards the pool dictionary.

    Args:
        ssh_config: Parsed SSH config used to resolve aliases.
        default_timeout: Connect timeout used when none is given.
        command_timeout: Deadline for a remote command's output, or None
            to wait indefinitely.
        pool_max_age: Maximum age of pooled connections in seconds.

    Example:
        >>> manager = SSHManager.from_discovery(discover_hosts())
        >>> result = manager.execute("gpu-1", "nvidia-smi -L", 10, [])
        >>> print(result.stdout)
        >>> manager.close_all()
    """

    def __init__(
        self,
        ssh_config: paramiko.SSHConfig | None = None,
        default_timeout: int = 10,
        command_timeout: float | None = 30.0,
        pool_max_age: int = 300,
    ) -> None:
        self._lock = threading.RLock()
        self._pool: dict[str, PooledConnection] = {}
        self.ssh_config = ssh_config or paramiko.SSHConfig()
        self.default_timeout = default_timeout
        self.command_timeout = command_timeout
        self.pool_max_age = pool_max_age

    @classmethod
    def from_discovery(cls, discovery: DiscoveryResult, **kwargs: Any) -> SSHManager:
        """Create a manager resolving aliases from a discovery pass.

        Args:
            discovery: Result of :func:`gpuwatch.core.ssh_config.discover_hosts`.
            **kwargs: Passed to the constructor.

        Returns:
            SSHManager whose lookups see every included file.
        """
        try:
            ssh_config = paramiko.SSHConfig.from_text(discovery.to_ssh_config_text())
        except ConfigParseError as e:
            logger.warning(f"Could not load {discovery.root} for alias resolution: {e}")
            ssh_config = paramiko.SSHConfig()
        return cls(ssh_config=ssh_config, **kwargs)

    def resolve_host(self, name: str, extra_options: Sequence[str] = ()) -> Host:
        """Resolve an alias to connection parameters.

        Args:
            name: SSH alias.
            extra_options: ``-o`` style overrides.

        Returns:
            Resolved Host.
        """
        options = self.ssh_config.lookup(name)
        return Host.from_ssh_config(name, dict(options), parse_ssh_options(list(extra_options)))

    def _create_client(self, host: Host, timeout: float) -> paramiko.SSHClient:
        """Create a new SSH client connection.

        Args:
            host: Host to connect to.
            timeout: Connection timeout in seconds.

        Returns:
            Connected SSH client.

        Raises:
            SSHAuthenticationError: If authentication fails.
            SSHTimeoutError: If connection times out.
            SSHConnectionError: For other connection failures.
        """
        client = paramiko.SSHClient()
        with contextlib.suppress(OSError):
            client.load_system_host_keys()
        if host.strict_host_key_checking:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        key_filenames = []
        for key in host.identity_files:
            if Path(key).exists():
                key_filenames.append(key)
            else:
                logger.debug(f"SSH key not found: {key}")

        try:
            sock = paramiko.ProxyCommand(host.proxy_command) if host.proxy_command else None
            logger.debug(f"Connecting to {host.hostname}:{host.port} as {host.username}")
            client.connect(
                hostname=host.hostname,
                port=host.port,
                username=host.username,
                key_filename=key_filenames or None,
                look_for_keys=True,
                allow_agent=True,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                sock=sock,
            )
            logger.debug(f"Connected to {host.display_name}")
            return client

        except paramiko.AuthenticationException as e:
            client.close()
            raise SSHAuthenticationError(host.name, host.username) from e

        except TimeoutError as e:
            client.close()
            raise SSHTimeoutError(host.name, timeout) from e

        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise SSHConnectionError(host.name, str(e) or type(e).__name__) from e

    def get_client(self, host: Host, timeout: float | None = None) -> paramiko.SSHClient:
        """Get a pooled or new SSH client for a host.

        The connection is established outside the pool lock so that
        workers connecting to different hosts do not wait for each other.

        Args:
            host: Host to connect to.
            timeout: Connect timeout in seconds.

        Returns:
            SSH client (may be from pool or newly created).
        """
        with self._lock:
            pooled = self._pool.get(host.name)
            if pooled is not None:
                age = time.time() - pooled.created_at
                if pooled.is_active() and age < self.pool_max_age:
                    logger.debug(f"Reusing pooled connection for {host.name}")
                    return pooled.client

                logger.debug(f"Removing stale connection for {host.name}")
                with contextlib.suppress(Exception):
                    pooled.client.close()
                del self._pool[host.name]

        client = self._create_client(host, timeout or self.default_timeout)
        with self._lock:
            self._pool[host.name] = PooledConnection(client=client, host=host)
        return client

    def execute(
        self,
        host: str,
        command: str,
        connect_timeout: int | None = None,
        extra_options: Sequence[str] = (),
    ) -> SSHResult:
        """Execute a command on an SSH alias.

        Args:
            host: SSH alias.
            command: Command to execute.
            connect_timeout: Connect timeout in seconds.
            extra_options: ``-o`` style overrides.

        Returns:
            SSHResult with command output and exit code.

        Raises:
            SSHConnectionError: If the host cannot be reached or the
                command exceeds the command timeout.

        Example:
            >>> result = manager.execute("gpu-1", DEFAULT_GPU_QUERY, 10)
            >>> if result.success:
            ...     rows = parse_gpu_rows(result.stdout)
        """
        resolved = self.resolve_host(host, extra_options)
        client = self.get_client(resolved, timeout=connect_timeout)

        logger.debug(f"Executing on {host}: {command}")

        try:
            _stdin, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)

            stdout_data = stdout.read().decode("utf-8", errors="replace")
            stderr_data = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()

        except TimeoutError as e:
            # Dropping the connection also ends the remote session
            self.close(host)
            raise SSHCommandTimeoutError(host, self.command_timeout or 0) from e

        except (paramiko.SSHException, EOFError, OSError) as e:
            self.close(host)
            raise SSHConnectionError(host, str(e) or type(e).__name__) from e

        result = SSHResult(
            stdout=stdout_data,
            stderr=stderr_data,
            exit_code=exit_code,
            host=host,
            command=command,
        )

        if result.success:
            logger.debug(f"Command succeeded on {host}")
        else:
            logger.info(f"Command failed on {host} with exit code {exit_code}")

        return result

    def close(self, host_name: str) -> None:
        """Close a specific pooled connection.

        Args:
            host_name: Alias of the host connection to close.
        """
        with self._lock:
            pooled = self._pool.pop(host_name, None)
        if pooled is not None:
            with contextlib.suppress(Exception):
                pooled.client.close()
            logger.debug(f"Closed connection for {host_name}")

    def close_all(self) -> None:
        """Close all pooled connections."""
        with self._lock:
            pooled_connections = list(self._pool.values())
            self._pool.clear()
        for pooled in pooled_connections:
            with contextlib.suppress(Exception):
                pooled.client.close()
        logger.debug("Closed all SSH connections")

    def __enter__(self) -> SSHManager:
        return self

    def __exit__(self, *args: object) -> None:
        self.close_all()
