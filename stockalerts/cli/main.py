"""Main CLI entry point for StockAlerts.

This module provides the main click group and lazy loading
of the command modules.
"""

from pathlib import Path
from typing import Optional

import click


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules are only imported when they are actually invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        if cmd_name in self.commands:
            return self.commands[cmd_name]
        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)
        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Import a command from its module path and register it."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = None
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if isinstance(attr, click.Command) and attr.name == cmd_name:
                cmd = attr
                break

        if cmd is None:
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


LAZY_SUBCOMMANDS = {
    # Alert management
    "alert": "stockalerts.cli.alerts",
    "alerts": "stockalerts.cli.alerts",
    "history": "stockalerts.cli.alerts",
    # Evaluation
    "check": "stockalerts.cli.run",
    "watch": "stockalerts.cli.run",
    # Lifecycle
    "init": "stockalerts.cli.admin",
    "uninstall": "stockalerts.cli.admin",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/stockalerts/config.toml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(package_name="stockalerts")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """StockAlerts - price and condition alerts for stock symbols.

    \b
    Quick Start:
      stockalerts init                                  # Write a config file
      stockalerts alert AAPL price_above 200 -e me@x.io # Create an alert
      stockalerts check                                 # Evaluate alerts now
      stockalerts watch                                 # Check periodically
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
