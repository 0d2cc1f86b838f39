"""Helpers shared by the CLI commands."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

console = Console()


def error_panel(title: str, message: str) -> None:
    console.print(Panel(
        f"[red]{message}[/red]",
        title=f"[bold red]{title}[/bold red]",
        border_style="red",
    ))


def get_app(ctx: click.Context, open_store: bool = True):
    """Build the app from the config file chosen on the command line.

    Errors are printed as a panel and end the command with exit code 1.
    """
    from stockalerts.app import AlertsApp
    from stockalerts.config import load_config
    from stockalerts.errors import AlertsError
    from stockalerts.logging_setup import setup_logging

    obj = ctx.find_root().obj or {}
    config_path: Optional[Path] = obj.get("config_path")
    try:
        config = load_config(config_path)
        setup_logging(
            "DEBUG" if obj.get("verbose") else config["logging"]["level"],
            config["logging"]["file"] or None,
        )
        app = AlertsApp(config)
        if open_store:
            app.store.open()
    except AlertsError as e:
        error_panel("Configuration Error", str(e))
        raise SystemExit(1)
    return app
