"""Data models for gpuwatch.

This module contains the host connection model and the per-cycle
poll and display models.
"""

from gpuwatch.models.gpu import DisplayRecord, GpuRow, HostStatus, PollOutcome, PollRequest
from gpuwatch.models.host import Host

__all__ = [
    "DisplayRecord",
    "GpuRow",
    "Host",
    "HostStatus",
    "PollOutcome",
    "PollRequest",
]
