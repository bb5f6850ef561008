"""Pytest configuration and fixtures for gpuwatch tests.

This module provides shared fixtures for testing gpuwatch components
including SSH config trees on disk, a fake transport for the poller and
sample GPU query output.
"""

from __future__ import annotations

import io
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from gpuwatch.core.ssh import SSHResult
from gpuwatch.utils.output import OutputFormat, OutputFormatter

if TYPE_CHECKING:
    from click.testing import CliRunner


class FakeTransport:
    """In-memory transport recording calls and peak concurrency.

    Args:
        responses: Per-host SSHResult or exception to raise. Hosts without
            an entry succeed with empty output.
        delays: Per-host seconds to block before answering.
        default_delay: Delay for hosts without an entry in ``delays``.
    """

    def __init__(
        self,
        responses: dict[str, SSHResult | Exception] | None = None,
        delays: dict[str, float] | None = None,
        default_delay: float = 0.01,
    ) -> None:
        self.responses = responses or {}
        self.delays = delays or {}
        self.default_delay = default_delay
        self.calls: list[tuple[str, str, int | None, tuple[str, ...]]] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def execute(
        self,
        host: str,
        command: str,
        connect_timeout: int | None = None,
        extra_options: tuple[str, ...] = (),
    ) -> SSHResult:
        with self._lock:
            self.calls.append((host, command, connect_timeout, tuple(extra_options)))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delays.get(host, self.default_delay))
            response = self.responses.get(host)
            if isinstance(response, Exception):
                raise response
            if response is None:
                return SSHResult(stdout="", stderr="", exit_code=0, host=host, command=command)
            return response
        finally:
            with self._lock:
                self.in_flight -= 1
                self.completed.append(host)

    def calls_for(self, host: str) -> int:
        return sum(1 for call in self.calls if call[0] == host)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by CLI runs so later tests do not write to closed streams."""
    yield
    for name in ("gpuwatch", "paramiko"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    """Factory for fake transports."""
    return FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    """A fake transport where every host succeeds with empty output."""
    return FakeTransport()


@pytest.fixture
def ssh_dir(tmp_path: Path) -> Path:
    """Directory holding SSH config files for a test."""
    path = tmp_path / "ssh"
    path.mkdir()
    return path


@pytest.fixture
def write_config(ssh_dir: Path) -> Callable[[str, str], Path]:
    """Write a config file relative to the test's SSH directory."""

    def _write(name: str, text: str) -> Path:
        path = ssh_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def gpu_output_two() -> str:
    """Two GPUs as printed by the default nvidia-smi query."""
    return (
        "0, NVIDIA A100-SXM4-80GB, 41, 87, 61234, 81920\n"
        "1, NVIDIA A100-SXM4-80GB, 38, 0, 4, 81920\n"
    )


@pytest.fixture
def ok_result(gpu_output_two: str) -> SSHResult:
    """A successful GPU query."""
    return SSHResult(
        stdout=gpu_output_two,
        stderr="",
        exit_code=0,
        host="gpu-1",
        command="nvidia-smi",
    )


@pytest.fixture
def failed_result() -> SSHResult:
    """A GPU query that failed on the remote side."""
    return SSHResult(
        stdout="",
        stderr="bash: nvidia-smi: command not found\n",
        exit_code=127,
        host="cpu-1",
        command="nvidia-smi",
    )


@pytest.fixture
def output_buffer() -> io.StringIO:
    """Buffer capturing formatter output."""
    return io.StringIO()


@pytest.fixture
def table_formatter(output_buffer: io.StringIO) -> OutputFormatter:
    """Table formatter writing into ``output_buffer``."""
    return OutputFormatter(
        OutputFormat.TABLE,
        output_console=Console(file=output_buffer, width=200),
        clear_screen=False,
    )


@pytest.fixture
def mock_ssh_client() -> MagicMock:
    """Create a mocked Paramiko SSH client."""
    client = MagicMock()
    transport = MagicMock()
    transport.is_active.return_value = True
    client.get_transport.return_value = transport

    stdout = MagicMock()
    stdout.read.return_value = b"0, Tesla T4, 35, 0, 0, 15360\n"
    stdout.channel.recv_exit_status.return_value = 0

    stderr = MagicMock()
    stderr.read.return_value = b""

    client.exec_command.return_value = (MagicMock(), stdout, stderr)

    return client


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner."""
    from click.testing import CliRunner

    return CliRunner()
