"""Turning poll outcomes into display records.

GPU lines are parsed permissively: a field that is missing or empty is
replaced by a placeholder instead of failing the host, so a glitch in one
metric never hides the others.
"""

from __future__ import annotations

from collections.abc import Iterable

from gpuwatch.models.gpu import DisplayRecord, GpuRow, HostStatus, PollOutcome
from gpuwatch.utils.logging import get_logger

logger = get_logger("aggregator")

# index, name, temperature, utilization, memory used, memory total
GPU_FIELD_COUNT = 6

FIELD_DEFAULTS = {
    "name": "N/A",
    "temperature": "0",
    "utilization": "0",
    "memory_used": "0",
    "memory_total": "0",
}


def first_error_line(reason: str, exit_status: int) -> str:
    """Pick the single line shown for a failed host.

    Args:
        reason: Captured error text.
        exit_status: Exit status of the call.

    Returns:
        The first non-blank line of ``reason``, or ``"ssh exit N"``.
    """
    for line in reason.splitlines():
        if line.strip():
            return line.strip()
    return f"ssh exit {exit_status}"


def parse_gpu_line(line: str) -> GpuRow | None:
    """Parse one comma-separated GPU line.

    Args:
        line: A line like ``"0, RTX4090, 45, 30, 1024, 24576"``.

    Returns:
        The row, or None when the index field is empty.
    """
    fields = [f.strip() for f in line.split(",")][:GPU_FIELD_COUNT]
    if not fields or not fields[0]:
        return None

    if len(fields) < GPU_FIELD_COUNT:
        logger.debug(f"Short GPU line ({len(fields)} fields), using placeholders: {line!r}")

    values = dict(zip(["index", *FIELD_DEFAULTS], fields, strict=False))
    for key, default in FIELD_DEFAULTS.items():
        if not values.get(key):
            values[key] = default

    return GpuRow(**values)


def parse_gpu_rows(output: str) -> list[GpuRow]:
    """Parse every GPU line of a command's output.

    Args:
        output: Raw stdout of the GPU query.

    Returns:
        Rows in output order; empty for blank output.
    """
    rows = []
    for line in output.splitlines():
        row = parse_gpu_line(line)
        if row is not None:
            rows.append(row)
    return rows


def aggregate_outcome(outcome: PollOutcome) -> DisplayRecord:
    """Convert one outcome into a display record.

    Args:
        outcome: The host's outcome for this cycle.

    Returns:
        An ERROR record with a one-line message, or an OK record with zero
        or more GPU rows.
    """
    if not outcome.ok:
        return DisplayRecord(
            host=outcome.host,
            status=HostStatus.ERROR,
            error=first_error_line(outcome.reason, outcome.exit_status),
        )

    if not outcome.output.strip():
        return DisplayRecord(host=outcome.host)

    return DisplayRecord(host=outcome.host, gpus=parse_gpu_rows(outcome.output))


def aggregate(outcomes: Iterable[PollOutcome]) -> list[DisplayRecord]:
    """Convert outcomes to records, keeping their order."""
    return [aggregate_outcome(outcome) for outcome in outcomes]
