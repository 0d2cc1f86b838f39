"""Alert management commands for StockAlerts CLI.

Handles creating, listing and cancelling alerts and showing the
evaluation history.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from stockalerts.cli.common import console, error_panel, get_app
from stockalerts.errors import StoreError, ValidationError
from stockalerts.models import AlertType, OutcomeStatus

ALERT_TYPE_CHOICES = [t.value for t in AlertType]

STATUS_STYLES = {
    OutcomeStatus.FIRED: "[green]fired[/green]",
    OutcomeStatus.NOT_FIRED: "[dim]not fired[/dim]",
    OutcomeStatus.DEFERRED: "[yellow]deferred[/yellow]",
    OutcomeStatus.ERRORED: "[red]errored[/red]",
}


@click.command("alert")
@click.argument("symbol")
@click.argument("alert_type", type=click.Choice(ALERT_TYPE_CHOICES, case_sensitive=False))
@click.argument("value")
@click.option("--email", "-e", required=True, help="Address to notify when the alert fires.")
@click.pass_context
def create_alert(ctx: click.Context, symbol: str, alert_type: str, value: str, email: str) -> None:
    """Create an alert.

    SYMBOL is the ticker (e.g., AAPL, TSLA).
    ALERT_TYPE is one of the condition kinds below.
    VALUE is the numeric threshold.

    \b
    Alert types:
      price_above VALUE       - price rises above VALUE
      price_below VALUE       - price falls below VALUE
      pct_change_above VALUE  - daily % change above VALUE
      pct_change_below VALUE  - daily % change below VALUE (e.g. -5)
      volume_above VALUE      - session volume above VALUE

    \b
    Examples:
      stockalerts alert AAPL price_above 200 -e me@example.com
      stockalerts alert TSLA pct_change_below -5 -e me@example.com
    """
    app = get_app(ctx)
    try:
        alert_id = app.store.create(
            email=email, symbol=symbol, alert_type=alert_type, condition_value=value
        )
        alert = app.store.get(alert_id)
    except ValidationError as e:
        error_panel("Invalid Alert", "\n".join(e.problems))
        raise SystemExit(1)
    except StoreError as e:
        error_panel("Error", f"Failed to create alert:\n\n{e}")
        raise SystemExit(1)

    console.print(Panel(
        f"[bold green]Alert Created[/bold green]\n\n"
        f"ID:        {alert_id}\n"
        f"Symbol:    {alert.symbol}\n"
        f"Condition: {alert.alert_type.label} {alert.condition_value:g}\n"
        f"Notify:    {alert.email}",
        title="[bold]New Alert[/bold]",
        border_style="green",
    ))


@click.command("alerts")
@click.option("--all", "show_all", is_flag=True, help="Include fired and cancelled alerts.")
@click.option(
    "--cancel", "cancel_id",
    type=int,
    default=None,
    help="Cancel the alert with the given ID.",
)
@click.pass_context
def list_alerts(ctx: click.Context, show_all: bool, cancel_id: Optional[int]) -> None:
    """Display or cancel alerts.

    \b
    Examples:
      stockalerts alerts              # Active alerts
      stockalerts alerts --all        # Including inactive ones
      stockalerts alerts --cancel 5   # Cancel alert 5
    """
    app = get_app(ctx)
    try:
        if cancel_id is not None:
            alert = app.store.get(cancel_id)
            if alert is None:
                console.print(f"[yellow]Alert with ID {cancel_id} not found[/yellow]")
                return
            if app.store.cancel(cancel_id):
                console.print(f"[green]✓ Cancelled alert {cancel_id} ({alert.describe()})[/green]")
            else:
                console.print(f"[yellow]Alert {cancel_id} is already inactive[/yellow]")
            return

        alerts = app.store.list_all() if show_all else app.store.list_active()
    except StoreError as e:
        error_panel("Error", f"Failed to list alerts:\n\n{e}")
        raise SystemExit(1)

    if not alerts:
        console.print(Panel(
            "[dim]No alerts. Use 'stockalerts alert SYMBOL TYPE VALUE -e EMAIL' to create one.[/dim]",
            title="[bold]Alerts[/bold]",
            border_style="dim",
        ))
        return

    table = Table(
        title="All Alerts" if show_all else "Active Alerts",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=6)
    table.add_column("Symbol", style="bold")
    table.add_column("Condition")
    table.add_column("Email")
    table.add_column("Created", style="dim")
    table.add_column("Status", justify="center")

    for alert in alerts:
        if alert.active:
            status = "[green]● active[/green]"
        elif alert.deactivation_reason == "fired":
            status = "[yellow]✓ fired[/yellow]"
        else:
            status = "[dim]cancelled[/dim]"
        table.add_row(
            str(alert.id),
            alert.symbol,
            f"{alert.alert_type.label} {alert.condition_value:g}",
            alert.email,
            alert.created_at.strftime("%Y-%m-%d %H:%M"),
            status,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(alerts)} alerts[/dim]")


@click.command("history")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Rows to show.")
@click.option("--alert", "alert_id", type=int, default=None, help="Only this alert.")
@click.pass_context
def history(ctx: click.Context, limit: int, alert_id: Optional[int]) -> None:
    """Show recent alert outcomes (fired, deferred, errored)."""
    app = get_app(ctx)
    try:
        outcomes = app.store.recent_outcomes(limit=limit, alert_id=alert_id)
    except StoreError as e:
        error_panel("Error", f"Failed to read history:\n\n{e}")
        raise SystemExit(1)

    if not outcomes:
        console.print("[dim]No recorded outcomes yet.[/dim]")
        return

    table = Table(title="Alert History", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="dim")
    table.add_column("Alert", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Notified", justify="center")

    for outcome in outcomes:
        notified = "-" if outcome.notified is None else ("✓" if outcome.notified else "[red]✗[/red]")
        table.add_row(
            outcome.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(outcome.alert_id),
            outcome.symbol,
            STATUS_STYLES[outcome.status],
            outcome.reason,
            notified,
        )
    console.print(table)
