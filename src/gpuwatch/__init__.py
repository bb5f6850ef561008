"""gpuwatch - GPU dashboard for the hosts in your SSH config.

This package discovers hosts from an OpenSSH client config (following
Include directives), polls every host's GPUs over SSH with a bounded number
of parallel sessions and renders a table that refreshes on an interval.

Example:
    $ gpuwatch
    $ gpuwatch --hosts gpu-1,gpu-2 --once
    $ gpuwatch -c ~/work/ssh_config -p 16 -i 10
"""

__version__ = "0.1.0"

from gpuwatch.core.exceptions import (
    ConfigNotFoundError,
    ConfigurationError,
    GpuWatchError,
    NoActiveHostsError,
    NoHostsFoundError,
    SSHConnectionError,
)

__all__ = [
    "ConfigNotFoundError",
    "ConfigurationError",
    "GpuWatchError",
    "NoActiveHostsError",
    "NoHostsFoundError",
    "SSHConnectionError",
    "__version__",
]
