"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from gpuwatch.utils.logging import configure_logging, get_log_level, get_logger


@pytest.mark.parametrize(
    ("verbosity", "level"),
    [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
)
def test_get_log_level(verbosity: int, level: int) -> None:
    assert get_log_level(verbosity) == level


def test_get_logger_namespace() -> None:
    assert get_logger("poller").name == "gpuwatch.poller"
    assert get_logger("gpuwatch.ssh").name == "gpuwatch.ssh"


def test_settings_level_used_without_flags() -> None:
    configure_logging(verbosity=0, log_level="info")

    (handler,) = logging.getLogger("gpuwatch").handlers
    assert handler.level == logging.INFO


def test_flags_override_settings_level() -> None:
    configure_logging(verbosity=2, log_level="ERROR")

    (handler,) = logging.getLogger("gpuwatch").handlers
    assert handler.level == logging.DEBUG


def test_reconfigure_replaces_handlers() -> None:
    configure_logging()
    configure_logging()

    assert len(logging.getLogger("gpuwatch").handlers) == 1


def test_log_file_gets_debug(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "gpuwatch.log"
    configure_logging(verbosity=0, log_file=log_file)

    get_logger("test").debug("pool reused for gpu-1")
    for handler in logging.getLogger("gpuwatch").handlers:
        handler.flush()

    assert "pool reused for gpu-1" in log_file.read_text()


def test_paramiko_only_at_highest_verbosity() -> None:
    configure_logging(verbosity=2)
    assert logging.getLogger("paramiko").handlers == []

    configure_logging(verbosity=3)
    assert len(logging.getLogger("paramiko").handlers) == 1
