"""CLI commands for StockAlerts.

This package provides the command-line interface for creating alerts,
running checks and managing the scheduled job.
"""

from stockalerts.cli.main import cli, main

__all__ = ["cli", "main"]
