"""CLI module for gpuwatch.

This package contains the Click command definition for the gpuwatch CLI.
"""

from gpuwatch.cli.main import cli

__all__ = ["cli"]
