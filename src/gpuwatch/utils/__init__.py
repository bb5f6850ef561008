"""Utility modules for gpuwatch.

This package contains shared utilities for logging and output formatting.
"""

from gpuwatch.utils.logging import configure_logging, get_logger
from gpuwatch.utils.output import OutputFormat, OutputFormatter, console, render_table

__all__ = [
    "OutputFormat",
    "OutputFormatter",
    "configure_logging",
    "console",
    "get_logger",
    "render_table",
]
