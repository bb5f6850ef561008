"""Tests for SSH connection management."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from gpuwatch.core.exceptions import (
    SSHAuthenticationError,
    SSHCommandTimeoutError,
    SSHConnectionError,
    SSHTimeoutError,
)
from gpuwatch.core.ssh import SSHManager, SSHResult
from gpuwatch.core.ssh_config import discover_hosts
from gpuwatch.models.host import Host, parse_ssh_options

SAMPLE_CONFIG = """\
Host gpu-1
  HostName 10.0.0.21
  User ops
  Port 2222
  IdentityFile ~/.ssh/lab_key

Host jump-*
  ProxyCommand none

Host gpu-2
  StrictHostKeyChecking yes
"""


class TestSSHResult:
    """Tests for SSHResult dataclass."""

    def test_success_property(self) -> None:
        """Test the success property."""
        success_result = SSHResult(
            stdout="output",
            stderr="",
            exit_code=0,
            host="test",
            command="echo test",
        )
        assert success_result.success is True

        failure_result = SSHResult(
            stdout="",
            stderr="error",
            exit_code=1,
            host="test",
            command="false",
        )
        assert failure_result.success is False


class TestParseSSHOptions:
    """Tests for parse_ssh_options."""

    def test_both_forms(self) -> None:
        assert parse_ssh_options(["User=ops", "Port 2222", "  ConnectTimeout = 4 "]) == {
            "user": "ops",
            "port": "2222",
            "connecttimeout": "4",
        }

    def test_later_options_win_and_empty_ignored(self) -> None:
        assert parse_ssh_options(["User=a", "User=b", "Compression", ""]) == {"user": "b"}


class TestResolveHost:
    """Tests for alias resolution."""

    @pytest.fixture
    def ssh_manager(self) -> SSHManager:
        return SSHManager(ssh_config=paramiko.SSHConfig.from_text(SAMPLE_CONFIG))

    def test_resolves_config_values(self, ssh_manager: SSHManager) -> None:
        host = ssh_manager.resolve_host("gpu-1")

        assert host.hostname == "10.0.0.21"
        assert host.username == "ops"
        assert host.port == 2222
        assert host.identity_files == [str(Path("~/.ssh/lab_key").expanduser())]
        assert host.strict_host_key_checking is False
        assert host.display_name == "gpu-1 (10.0.0.21)"

    def test_unknown_fields_default(self, ssh_manager: SSHManager) -> None:
        host = ssh_manager.resolve_host("gpu-2")

        assert host.hostname == "gpu-2"
        assert host.port == 22
        assert host.strict_host_key_checking is True
        assert host.display_name == "gpu-2"

    def test_overrides_take_precedence(self, ssh_manager: SSHManager) -> None:
        """Test that identity file overrides are tried first."""
        host = ssh_manager.resolve_host(
            "gpu-1", ["User=root", "Port=22", "IdentityFile=/keys/override"]
        )

        assert host.username == "root"
        assert host.port == 22
        assert host.identity_files[0] == "/keys/override"
        assert len(host.identity_files) == 2

    def test_proxy_command_none(self) -> None:
        host = Host.from_ssh_config("jump-1", {"proxycommand": "none"})

        assert host.proxy_command is None

    def test_from_discovery_sees_included_files(self, write_config) -> None:
        root = write_config("config", "Include hosts.d/*\n")
        write_config("hosts.d/lab", "Host lab-1\n  HostName 192.168.7.1\n  User lab\n")

        manager = SSHManager.from_discovery(discover_hosts(root), default_timeout=4)

        host = manager.resolve_host("lab-1")
        assert host.hostname == "192.168.7.1"
        assert host.username == "lab"
        assert manager.default_timeout == 4


class TestSSHManager:
    """Tests for SSHManager."""

    @pytest.fixture
    def ssh_manager(self) -> SSHManager:
        """Create an SSH manager for testing."""
        return SSHManager(
            ssh_config=paramiko.SSHConfig.from_text(SAMPLE_CONFIG),
            default_timeout=10,
            command_timeout=5.0,
            pool_max_age=60,
        )

    @pytest.fixture
    def host(self) -> Host:
        """Create a test host."""
        return Host(
            name="test-host",
            hostname="192.168.1.100",
            username="admin",
            port=22,
        )

    def test_init(self, ssh_manager: SSHManager) -> None:
        """Test SSHManager initialization."""
        assert ssh_manager.default_timeout == 10
        assert ssh_manager.command_timeout == 5.0
        assert ssh_manager.pool_max_age == 60
        assert ssh_manager._pool == {}

    @patch("paramiko.SSHClient")
    def test_create_client_success(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        """Test successful client creation."""
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client

        client = ssh_manager._create_client(host, timeout=7)

        assert client == mock_client
        mock_client.connect.assert_called_once()
        kwargs = mock_client.connect.call_args.kwargs
        assert kwargs["hostname"] == "192.168.1.100"
        assert kwargs["username"] == "admin"
        assert kwargs["timeout"] == 7
        assert kwargs["sock"] is None

    @patch("paramiko.SSHClient")
    def test_strict_host_key_checking_rejects_unknown(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
    ) -> None:
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client

        ssh_manager._create_client(ssh_manager.resolve_host("gpu-2"), timeout=5)

        (policy,), _ = mock_client.set_missing_host_key_policy.call_args
        assert isinstance(policy, paramiko.RejectPolicy)

    @patch("paramiko.SSHClient")
    def test_missing_identity_files_are_skipped(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        tmp_path: Path,
    ) -> None:
        key = tmp_path / "id_lab"
        key.write_text("not really a key")
        mock_client_class.return_value = MagicMock()
        host = Host(
            name="k",
            hostname="k",
            identity_files=[str(tmp_path / "missing"), str(key)],
        )

        ssh_manager._create_client(host, timeout=5)

        kwargs = mock_client_class.return_value.connect.call_args.kwargs
        assert kwargs["key_filename"] == [str(key)]

    @patch("paramiko.SSHClient")
    def test_create_client_auth_failure(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        """Test authentication failure."""
        mock_client = MagicMock()
        mock_client.connect.side_effect = paramiko.AuthenticationException()
        mock_client_class.return_value = mock_client

        with pytest.raises(SSHAuthenticationError) as exc_info:
            ssh_manager._create_client(host, timeout=5)

        assert "admin" in str(exc_info.value)
        mock_client.close.assert_called_once()

    @patch("paramiko.SSHClient")
    def test_create_client_timeout(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        """Test connection timeout."""
        mock_client = MagicMock()
        mock_client.connect.side_effect = TimeoutError()
        mock_client_class.return_value = mock_client

        with pytest.raises(SSHTimeoutError) as exc_info:
            ssh_manager._create_client(host, timeout=5)

        assert "5s" in str(exc_info.value)

    @patch("paramiko.SSHClient")
    def test_create_client_refused(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        mock_client = MagicMock()
        mock_client.connect.side_effect = ConnectionRefusedError(111, "Connection refused")
        mock_client_class.return_value = mock_client

        with pytest.raises(SSHConnectionError) as exc_info:
            ssh_manager._create_client(host, timeout=5)

        assert exc_info.value.host == "test-host"
        assert "Connection refused" in exc_info.value.reason

    @patch("paramiko.SSHClient")
    def test_execute_success(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        mock_ssh_client: MagicMock,
    ) -> None:
        """Test running a command successfully."""
        mock_client_class.return_value = mock_ssh_client

        result = ssh_manager.execute("gpu-1", "nvidia-smi", connect_timeout=3)

        assert result.success is True
        assert result.stdout == "0, Tesla T4, 35, 0, 0, 15360\n"
        assert result.host == "gpu-1"
        mock_ssh_client.exec_command.assert_called_once_with("nvidia-smi", timeout=5.0)
        assert mock_ssh_client.connect.call_args.kwargs["timeout"] == 3

    @patch("paramiko.SSHClient")
    def test_execute_nonzero_exit(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        mock_ssh_client: MagicMock,
    ) -> None:
        _, stdout, stderr = mock_ssh_client.exec_command.return_value
        stdout.read.return_value = b""
        stdout.channel.recv_exit_status.return_value = 127
        stderr.read.return_value = b"bash: nvidia-smi: command not found\n"
        mock_client_class.return_value = mock_ssh_client

        result = ssh_manager.execute("gpu-1", "nvidia-smi")

        assert result.success is False
        assert result.exit_code == 127
        assert "command not found" in result.stderr

    @patch("paramiko.SSHClient")
    def test_execute_command_timeout_drops_connection(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        mock_ssh_client: MagicMock,
    ) -> None:
        """Test that a hung command fails and its connection is dropped."""
        _, stdout, _ = mock_ssh_client.exec_command.return_value
        stdout.read.side_effect = TimeoutError()
        mock_client_class.return_value = mock_ssh_client

        with pytest.raises(SSHCommandTimeoutError) as exc_info:
            ssh_manager.execute("gpu-1", "nvidia-smi")

        assert exc_info.value.reason == "command timed out after 5s"
        assert ssh_manager._pool == {}
        mock_ssh_client.close.assert_called()

    @patch("paramiko.SSHClient")
    def test_execute_channel_error(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        mock_ssh_client: MagicMock,
    ) -> None:
        mock_ssh_client.exec_command.side_effect = paramiko.SSHException("channel closed")
        mock_client_class.return_value = mock_ssh_client

        with pytest.raises(SSHConnectionError, match="channel closed"):
            ssh_manager.execute("gpu-1", "nvidia-smi")

        assert ssh_manager._pool == {}

    @patch("paramiko.SSHClient")
    def test_connection_pooling(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        mock_ssh_client: MagicMock,
    ) -> None:
        """Test that connections are reused across cycles."""
        mock_client_class.return_value = mock_ssh_client

        ssh_manager.execute("gpu-1", "nvidia-smi")
        ssh_manager.execute("gpu-1", "nvidia-smi")

        assert mock_ssh_client.connect.call_count == 1
        assert mock_ssh_client.exec_command.call_count == 2
        assert list(ssh_manager._pool) == ["gpu-1"]

    @patch("paramiko.SSHClient")
    def test_inactive_connection_is_replaced(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        stale = MagicMock()
        stale.get_transport.return_value.is_active.return_value = False
        fresh = MagicMock()
        mock_client_class.side_effect = [stale, fresh]

        ssh_manager.get_client(host)
        client = ssh_manager.get_client(host)

        assert client is fresh
        stale.close.assert_called()

    @patch("paramiko.SSHClient")
    def test_close_all(
        self,
        mock_client_class: MagicMock,
        ssh_manager: SSHManager,
        host: Host,
    ) -> None:
        """Test closing all connections."""
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client

        mock_transport = MagicMock()
        mock_transport.is_active.return_value = True
        mock_client.get_transport.return_value = mock_transport

        ssh_manager.get_client(host)
        assert list(ssh_manager._pool) == ["test-host"]

        ssh_manager.close_all()

        assert ssh_manager._pool == {}
        mock_client.close.assert_called()

    @patch("paramiko.SSHClient")
    def test_context_manager_closes_pool(
        self,
        mock_client_class: MagicMock,
        host: Host,
    ) -> None:
        """Test SSHManager as context manager."""
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client

        with SSHManager() as manager:
            manager.get_client(host)

        mock_client.close.assert_called_once()
        assert manager._pool == {}
