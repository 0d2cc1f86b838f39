"""Setup and lifecycle commands for StockAlerts CLI."""

import click
from rich.panel import Panel

from stockalerts.cli.common import console, error_panel, get_app
from stockalerts.lifecycle import LifecycleResult


def _print_result(result: LifecycleResult) -> None:
    if not result.ok:
        error_panel(f"{result.action.title()} Failed", "\n".join(result.errors))
        raise SystemExit(1)
    console.print(Panel(
        "\n".join(f"✓ {step}" for step in result.steps),
        title=f"[bold]{result.action.title()}[/bold]",
        border_style="green",
    ))


@click.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Write a template config file and create the alert database."""
    from stockalerts.config import create_template_config, get_config_path

    path = get_config_path(ctx.find_root().obj.get("config_path"))
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path} (use --force to overwrite)[/yellow]")
        return
    path = create_template_config(path)

    app = get_app(ctx)
    console.print(Panel(
        f"Config written to [cyan]{path}[/cyan]\n\n"
        f"Database ready at [cyan]{app.store.db_path}[/cyan]\n\n"
        "[dim]Set gateway.provider and notify.method, then run 'stockalerts watch'.[/dim]",
        title="[bold green]Initialized[/bold green]",
        border_style="green",
    ))


@click.command("uninstall")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def uninstall_cmd(ctx: click.Context, yes: bool) -> None:
    """Remove the periodic check and delete every alert."""
    from stockalerts.lifecycle import uninstall

    if not yes:
        click.confirm("Delete all alerts and their history?", abort=True)
    app = get_app(ctx, open_store=False)
    _print_result(uninstall(app.store, app.scheduler))
