"""Core functionality for gpuwatch.

This module contains the host discovery, polling and refresh logic
along with settings management and the SSH transport.
"""

from gpuwatch.core.aggregator import aggregate, parse_gpu_rows
from gpuwatch.core.config import Settings, SettingsManager, WatchSettings
from gpuwatch.core.exceptions import (
    ConfigNotFoundError,
    ConfigurationError,
    GpuWatchError,
    NoActiveHostsError,
    NoHostsFoundError,
    SSHConnectionError,
)
from gpuwatch.core.hosts import HostSelection, parse_host_filter, select_hosts
from gpuwatch.core.loop import LoopState, RefreshLoop
from gpuwatch.core.poller import PollExecutor, build_requests
from gpuwatch.core.ssh import SSHManager, SSHResult
from gpuwatch.core.ssh_config import DiscoveryResult, SSHConfigParser, discover_hosts

__all__ = [
    "ConfigNotFoundError",
    "ConfigurationError",
    "DiscoveryResult",
    "GpuWatchError",
    "HostSelection",
    "LoopState",
    "NoActiveHostsError",
    "NoHostsFoundError",
    "PollExecutor",
    "RefreshLoop",
    "SSHConfigParser",
    "SSHConnectionError",
    "SSHManager",
    "SSHResult",
    "Settings",
    "SettingsManager",
    "WatchSettings",
    "aggregate",
    "build_requests",
    "discover_hosts",
    "parse_gpu_rows",
    "parse_host_filter",
    "select_hosts",
]
