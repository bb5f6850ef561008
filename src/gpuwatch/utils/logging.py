"""Logging setup for gpuwatch.

All diagnostics go to stderr, leaving stdout to the dashboard. Records
carry the thread name, so lines emitted by poll workers
(``gpuwatch-poll_N``) can be told apart from the refresh loop's.

Verbosity:
- no flag: the settings file level (WARNING by default)
- ``-v``: INFO, one line per failed host and per cycle
- ``-vv``: DEBUG, connection pooling and discovery details
- ``-vvv``: DEBUG plus paramiko's transport log
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAMESPACE = "gpuwatch"

STDERR_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(process)d:%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

PARAMIKO_VERBOSITY = 3


def get_log_level(verbosity: int) -> int:
    """Map a ``-v`` count to a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def _level_from_name(name: str | None, fallback: int) -> int:
    level = logging.getLevelName(name.upper()) if name else fallback
    return level if isinstance(level, int) else fallback


def configure_logging(
    verbosity: int = 0,
    log_file: str | Path | None = None,
    log_level: str | None = None,
) -> None:
    """Install gpuwatch's handlers, replacing any from an earlier call.

    Args:
        verbosity: Number of ``-v`` flags.
        log_file: Optional file that receives every record at DEBUG.
        log_level: Level name from the settings file, honoured when no
            ``-v`` flag is given.

    Example:
        >>> configure_logging(verbosity=1)
        >>> get_logger("poller").info("gpu-3: connection refused")
    """
    if verbosity > 0:
        level = get_log_level(verbosity)
    else:
        level = _level_from_name(log_level, logging.WARNING)

    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(logging.Formatter(STDERR_FORMAT, datefmt=DATE_FORMAT))
    package_logger.addHandler(stderr_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        package_logger.addHandler(file_handler)

    paramiko_logger = logging.getLogger("paramiko")
    paramiko_logger.handlers.clear()
    if verbosity >= PARAMIKO_VERBOSITY:
        paramiko_logger.setLevel(logging.DEBUG)
        paramiko_logger.addHandler(stderr_handler)
    else:
        paramiko_logger.setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the ``gpuwatch.<name>`` logger."""
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
