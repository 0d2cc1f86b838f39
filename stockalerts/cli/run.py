"""Evaluation commands for StockAlerts CLI.

``check`` runs a single pass now; ``watch`` keeps the scheduler running
in the foreground until interrupted.
"""

import time

import click
from rich.panel import Panel
from rich.table import Table

from stockalerts.cli.alerts import STATUS_STYLES
from stockalerts.cli.common import console, error_panel, get_app
from stockalerts.models import PassReport, PassState


def _parse_quote(text: str) -> tuple[str, float]:
    symbol, sep, price = text.partition("=")
    if not sep or not symbol.strip():
        raise click.BadParameter(f"expected SYMBOL=PRICE, got {text!r}")
    try:
        return symbol.strip().upper(), float(price)
    except ValueError:
        raise click.BadParameter(f"price in {text!r} is not a number") from None


def print_report(report: PassReport) -> None:
    """Render a pass report."""
    border = "red" if report.state == PassState.FAILED else "green"
    console.print(Panel(
        f"State:     {report.state.value}\n"
        f"Checked:   {report.checked}\n"
        f"Fired:     {report.fired}\n"
        f"Deferred:  {report.deferred}\n"
        f"Errored:   {report.errored}\n"
        f"Symbols:   {', '.join(report.symbols_requested) or '-'}"
        + (f"\n\n[red]{report.error}[/red]" if report.error else ""),
        title="[bold]Alert Check[/bold]",
        border_style=border,
    ))

    shown = [o for o in report.outcomes if o.status.value != "not_fired"]
    if shown:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Alert", justify="right")
        table.add_column("Symbol", style="bold")
        table.add_column("Status")
        table.add_column("Reason")
        for outcome in shown:
            table.add_row(
                str(outcome.alert_id),
                outcome.symbol,
                STATUS_STYLES[outcome.status],
                outcome.reason,
            )
        console.print(table)


@click.command("check")
@click.option(
    "--quote", "quotes",
    multiple=True,
    help="SYMBOL=PRICE to load into the static gateway (dry runs only).",
)
@click.pass_context
def check(ctx: click.Context, quotes: tuple[str, ...]) -> None:
    """Evaluate all active alerts once.

    \b
    Examples:
      stockalerts check
      stockalerts check --quote AAPL=201.5 --quote TSLA=180
    """
    from stockalerts.gateways import StaticGateway

    app = get_app(ctx)
    if quotes:
        if not isinstance(app.gateway, StaticGateway):
            error_panel("Error", "--quote only works with gateway.provider = 'static'")
            raise SystemExit(1)
        for text in quotes:
            symbol, price = _parse_quote(text)
            app.gateway.set_quote(symbol, price=price)

    report = app.runner.run_pass()
    print_report(report)
    if report.state == PassState.FAILED:
        raise SystemExit(1)


@click.command("watch")
@click.option("--run-now/--no-run-now", default=True, help="Run a pass before waiting.")
@click.pass_context
def watch(ctx: click.Context, run_now: bool) -> None:
    """Check alerts periodically until Ctrl+C."""
    from stockalerts.lifecycle import activate

    app = get_app(ctx, open_store=False)
    result = activate(app.store, app.scheduler)
    if not result.ok:
        error_panel("Activation Failed", "\n".join(result.errors))
        raise SystemExit(1)

    app.scheduler.start()
    console.print(
        f"[green]Watching alerts every {app.scheduler.interval_minutes:g} minutes. "
        "Press Ctrl+C to stop.[/green]"
    )
    try:
        if run_now:
            app.scheduler.run_now()
        shown = None
        while app.scheduler.running:
            report = app.runner.last_report
            if report is not None and report is not shown:
                print_report(report)
                shown = report
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/yellow]")
    finally:
        app.close()
