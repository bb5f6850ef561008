"""Terminal output utilities for gpuwatch.

This module renders the dashboard table and prints messages using the
Rich library. The table is plain fixed-width text so that its layout does
not depend on the terminal; JSON and YAML formats are available for
scripting.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape

from gpuwatch.models.gpu import DisplayRecord

# Global console instances
console = Console()
error_console = Console(stderr=True)

# Host, GPU, Name, Util%, Memory, Temp; Status is the unpadded last column
COLUMN_WIDTHS = (20, 4, 22, 6, 18, 8)
COLUMN_TITLES = ("Host", "GPU", "Name", "Util%", "Memory (MiB)", "Temp", "Status")
PLACEHOLDER = "-"


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


@dataclass(frozen=True)
class CycleHeader:
    """Metadata printed above each refresh.

    Args:
        timestamp: When the cycle finished polling.
        local_host: Name of the machine running gpuwatch.
        host_count: Number of active hosts.
    """

    timestamp: datetime
    local_host: str
    host_count: int

    def render(self) -> str:
        stamp = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp}] local: {self.local_host}  hosts: {self.host_count}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "local_host": self.local_host,
            "host_count": self.host_count,
        }


def format_row(*cells: str) -> str:
    """Lay out one table row with the fixed column widths."""
    padded = [f"{cell:<{width}}" for cell, width in zip(cells, COLUMN_WIDTHS, strict=False)]
    return " ".join([*padded, cells[-1]])


def render_table(records: Sequence[DisplayRecord]) -> str:
    """Render records as a fixed-width text table.

    Records are rendered in the order given. A host with several GPUs
    gets one row per GPU, with the host name on the first row only. A
    host without GPU rows gets a single placeholder row whose status is
    ``No GPU`` or its error message.

    Args:
        records: One record per active host, in display order.

    Returns:
        The table, header and separator included, without trailing newline.
    """
    lines = [
        format_row(*COLUMN_TITLES),
        format_row(*("-" * width for width in COLUMN_WIDTHS), "-" * len(COLUMN_TITLES[-1])),
    ]

    for record in records:
        if not record.has_gpus:
            lines.append(format_row(record.host, *[PLACEHOLDER] * 5, record.status_display))
            continue

        for position, gpu in enumerate(record.gpus):
            lines.append(
                format_row(
                    record.host if position == 0 else "",
                    gpu.index,
                    gpu.name,
                    gpu.utilization,
                    gpu.memory_display,
                    gpu.temperature_display,
                    record.status.value,
                )
            )

    return "\n".join(lines)


class OutputFormatter:
    """Prints refresh cycles in the configured format.

    Args:
        format_type: Output format to use (table, json, yaml).
        output_console: Rich console instance for output.
        clear_screen: Clear the terminal before each table refresh.

    Example:
        >>> formatter = OutputFormatter(OutputFormat.TABLE)
        >>> formatter.print_cycle(header, records)
    """

    def __init__(
        self,
        format_type: OutputFormat = OutputFormat.TABLE,
        output_console: Console | None = None,
        clear_screen: bool = True,
    ) -> None:
        self.format_type = format_type
        self.console = output_console or console
        self.clear_screen = clear_screen

    def render(self, header: CycleHeader, records: Sequence[DisplayRecord]) -> str:
        """Render one cycle as text in the configured format."""
        if self.format_type == OutputFormat.TABLE:
            return f"{header.render()}\n{render_table(records)}"

        data = {**header.to_dict(), "records": [r.to_dict() for r in records]}
        if self.format_type == OutputFormat.JSON:
            return json.dumps(data, indent=2, ensure_ascii=False)
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip("\n")

    def print_cycle(self, header: CycleHeader, records: Sequence[DisplayRecord]) -> None:
        """Print one cycle, clearing the screen first for live tables."""
        text = self.render(header, records)
        if (
            self.format_type == OutputFormat.TABLE
            and self.clear_screen
            and self.console.is_terminal
        ):
            self.console.clear()
        self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    def print_hosts(self, hosts: Sequence[str]) -> None:
        """Print host aliases, one per line (or as a JSON/YAML list)."""
        if self.format_type == OutputFormat.JSON:
            self.console.print(json.dumps(list(hosts), indent=2), markup=False, highlight=False)
        elif self.format_type == OutputFormat.YAML:
            self.console.print(
                yaml.safe_dump(list(hosts), default_flow_style=False).rstrip("\n"),
                markup=False,
                highlight=False,
            )
        else:
            for host in hosts:
                self.console.print(host, markup=False, highlight=False, emoji=False)


def print_error(message: str) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
    """
    error_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)


def print_warning(message: str) -> None:
    """Print a warning message to stderr.

    Args:
        message: Warning message to display.
    """
    error_console.print(f"[yellow]![/yellow] {escape(message)}", highlight=False)
