"""GPU poll models for gpuwatch.

This module defines the per-cycle data that flows from the poller through
the aggregator to the renderer: requests, tagged outcomes, parsed GPU rows
and the per-host display record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_GPU_QUERY = (
    "nvidia-smi --query-gpu=index,name,temperature.gpu,utilization.gpu,"
    "memory.used,memory.total --format=csv,noheader,nounits"
)


class HostStatus(str, Enum):
    """Status of a host for one refresh cycle."""

    OK = "OK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class PollRequest:
    """One remote command to run on one host.

    Args:
        host: SSH alias to poll.
        command: Remote command text.
        connect_timeout: Connection timeout in seconds.
        extra_options: ``-o`` style transport options.
    """

    host: str
    command: str = DEFAULT_GPU_QUERY
    connect_timeout: int = 10
    extra_options: tuple[str, ...] = ()


@dataclass(frozen=True)
class PollOutcome:
    """Tagged result of polling a host: success or failure, never both.

    Use :meth:`success` and :meth:`failure` to build instances.

    Attributes:
        host: SSH alias this outcome belongs to.
        ok: True for a success outcome.
        output: Raw stdout of a successful command.
        reason: Captured error text of a failed call.
        exit_status: Exit status of the remote command (255 when the host
            could not be reached).
    """

    host: str
    ok: bool
    output: str = ""
    reason: str = ""
    exit_status: int = 0

    @classmethod
    def success(cls, host: str, output: str) -> PollOutcome:
        return cls(host=host, ok=True, output=output)

    @classmethod
    def failure(cls, host: str, reason: str, exit_status: int = 255) -> PollOutcome:
        return cls(host=host, ok=False, reason=reason, exit_status=exit_status)


class GpuRow(BaseModel):
    """One GPU as reported by the remote query.

    Values are kept as text so that whatever the remote side reports,
    including ``[N/A]`` markers, reaches the table unchanged.
    """

    index: str
    name: str = "N/A"
    temperature: str = "0"
    utilization: str = "0"
    memory_used: str = "0"
    memory_total: str = "0"

    @property
    def memory_display(self) -> str:
        """Memory as ``used/total``."""
        return f"{self.memory_used}/{self.memory_total}"

    @property
    def temperature_display(self) -> str:
        """Temperature with unit."""
        return f"{self.temperature}°C"


class DisplayRecord(BaseModel):
    """Everything the renderer needs to show one host.

    Args:
        host: SSH alias.
        status: OK or ERROR.
        gpus: Parsed GPU rows (empty for errors and GPU-less hosts).
        error: Single-line error text for ERROR records.
    """

    host: str
    status: HostStatus = HostStatus.OK
    gpus: list[GpuRow] = Field(default_factory=list)
    error: str | None = None

    @property
    def has_gpus(self) -> bool:
        return bool(self.gpus)

    @property
    def status_display(self) -> str:
        """Text for the status column of a GPU-less row."""
        if self.status is HostStatus.ERROR:
            return self.error or "error"
        return "No GPU"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True)
        data["status"] = self.status.value
        return data
