"""
Paycadence CLI — command-line interface.

Usage:
    paycadence view --config paycadence.yaml
    paycadence pay 12 45.50
    paycadence set-paycheck 2025-01-03
    paycadence new-cycle --yes
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from paycadence import __version__
from paycadence.classifier import ExpenseStatus
from paycadence.config import PaycadenceConfig
from paycadence.dates import format_short_date
from paycadence.errors import PaycadenceError
from paycadence.planner import DashboardView, Planner

T = TypeVar("T")

app = typer.Typer(
    name="paycadence",
    help="💸 Paycadence — pay your bills on your paycheck's rhythm",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_STATUS_STYLES: dict[ExpenseStatus, str] = {
    ExpenseStatus.PAID: "green",
    ExpenseStatus.PARTIALLY_PAID: "cyan",
    ExpenseStatus.OVERDUE: "bold red",
    ExpenseStatus.PAY_THIS_WEEK: "yellow",
    ExpenseStatus.PAY_WITH_NEXT_CHECK: "blue",
    ExpenseStatus.PAY_WITH_FOLLOWING_CHECK: "magenta",
    ExpenseStatus.UNKNOWN: "dim",
}

ConfigOption = typer.Option("paycadence.yaml", "--config", "-c", help="Path to config file")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]Paycadence[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """💸 Paycadence — which paycheck pays which bill."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _load_config(config: str) -> PaycadenceConfig:
    config_path = config if Path(config).exists() else None
    settings = PaycadenceConfig.load(config_path)
    if config_path is None and "PAYCADENCE_STORE" not in os.environ:
        # without a config file the CLI still needs somewhere durable to keep data
        settings.store.backend = "sql"
    if logging.getLogger().level > logging.DEBUG:
        # --verbose wins over the configured level
        logging.getLogger("paycadence").setLevel(settings.log_level.upper())
    return settings


def _run(config: str, action: Callable[[Planner], Awaitable[T]]) -> T:
    """Build a planner, run ``action`` against it, and report errors politely."""

    async def _go() -> T:
        planner = Planner(config=_load_config(config))
        try:
            await planner.initialize()
            return await action(planner)
        finally:
            await planner.close()

    try:
        return asyncio.run(_go())
    except PaycadenceError as e:
        console.print(f"[bold red]Error:[/bold red] {e.user_message}")
        logging.getLogger("paycadence.cli").debug("Command failed: %s", e)
        raise typer.Exit(code=1) from e


@app.command()
def view(config: str = ConfigOption) -> None:
    """Show today's bills grouped by the paycheck that covers them."""
    dashboard = _run(config, lambda planner: planner.load_view())
    _display_view(dashboard)


@app.command()
def pay(
    expense_id: int = typer.Argument(..., help="Expense id"),
    amount: float = typer.Argument(..., help="New total paid amount"),
    adjust_balance: bool = typer.Option(
        False, "--adjust-balance", help="Also take the payment out of the expense's account"
    ),
    config: str = ConfigOption,
) -> None:
    """Record how much of an expense has been paid."""
    expense = _run(
        config,
        lambda planner: planner.apply_payment(expense_id, amount, adjust_balance=adjust_balance),
    )
    console.print(
        f"[green]✓[/green] {expense.name}: ${expense.paid_amount:,.2f} of ${expense.amount:,.2f} paid"
    )


@app.command("new-cycle")
def new_cycle(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm resetting every paid amount to zero"),
    config: str = ConfigOption,
) -> None:
    """Start a new cycle: reset paid amounts on every fixed expense."""
    if not yes:
        yes = typer.confirm("Reset paid amounts on all fixed expenses?")
    if not yes:
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit()
    entry = _run(config, lambda planner: planner.start_new_cycle(confirmed=True))
    console.print(f"[green]✓[/green] {entry.details.get('message', 'New cycle started')}")


@app.command("set-paycheck")
def set_paycheck(
    paid_on: str = typer.Argument(..., help="Date of your most recent paycheck (YYYY-MM-DD)"),
    config: str = ConfigOption,
) -> None:
    """Set the reference paycheck date the biweekly schedule is projected from."""
    settings = _run(config, lambda planner: planner.set_last_paycheck(paid_on))
    console.print(f"[green]✓[/green] Last paycheck set to {settings.last_paycheck_date}")


@app.command()
def export(
    path: str = typer.Argument(..., help="Where to write the JSON export"),
    config: str = ConfigOption,
) -> None:
    """Export everything to a JSON file."""
    target = _run(config, lambda planner: planner.export_to_file(path))
    console.print(f"[green]✓[/green] Exported to [bold]{target}[/bold]")


@app.command("import")
def import_(
    path: str = typer.Argument(..., help="JSON export to restore"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm replacing all existing data"),
    config: str = ConfigOption,
) -> None:
    """Replace all data with a JSON export."""
    if not yes and not typer.confirm("This replaces all existing data. Continue?"):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit()
    _run(config, lambda planner: planner.import_from_file(path))
    console.print(f"[green]✓[/green] Imported [bold]{path}[/bold]")


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"[bold]Paycadence[/bold] v{__version__}")


def _display_view(view: DashboardView) -> None:
    """Render the dashboard in the terminal."""
    projection = view.projection
    if view.error:
        console.print(f"[bold red]Could not load your data:[/bold red] {view.error}")
        return

    if projection.is_known:
        assert projection.next_pay_date is not None and projection.following_pay_date is not None
        header = (
            f"Next paycheck: [bold]{format_short_date(projection.next_pay_date)}[/bold] "
            f"({projection.days_until_next_pay} days)\n"
            f"Following paycheck: [bold]{format_short_date(projection.following_pay_date)}[/bold] "
            f"({projection.days_until_following_pay} days)"
        )
    else:
        header = "[yellow]No paycheck date set.[/yellow] Run [bold]paycadence set-paycheck YYYY-MM-DD[/bold]."
    console.print(Panel.fit(header, title=f"💸 Paycadence — {format_short_date(view.today)}"))

    if view.generated:
        made = [g for g in view.generated if g.success]
        if made:
            console.print(f"[dim]Generated {len(made)} recurring expense(s).[/dim]")

    table = Table(title="Fixed Expenses", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Due")
    table.add_column("Amount", justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Status")
    for item in view.expenses:
        expense = item.expense
        style = _STATUS_STYLES.get(item.status, "")
        table.add_row(
            str(expense.id),
            expense.name + (" ↻" if expense.is_generated else ""),
            format_short_date(expense.due_date),
            f"${expense.amount:,.2f}",
            f"${expense.paid_amount:,.2f}",
            f"[{style}]{item.status.value}[/{style}]" if style else item.status.value,
        )
    console.print(table)

    summary = Table(title="Summary", show_lines=True)
    summary.add_column("Bucket", style="bold")
    summary.add_column("Remaining", justify="right")
    rows: list[tuple[str, Any]] = [
        ("Pay This Week", view.summary.pay_this_week),
        ("Pay with Next Check", view.summary.pay_next_check),
        ("Pay with Following Check", view.summary.pay_following_check),
        ("Overdue", view.summary.overdue),
    ]
    for label, value in rows:
        summary.add_row(label, f"${value:,.2f}")
    console.print(summary)

    if view.upcoming_recurring:
        upcoming = Table(title="Upcoming Recurring")
        upcoming.add_column("Name", style="bold")
        upcoming.add_column("Amount", justify="right")
        upcoming.add_column("Frequency")
        upcoming.add_column("Next")
        for item in view.upcoming_recurring:
            upcoming.add_row(
                item.name,
                f"${item.amount:,.2f}" + (" (varies)" if item.is_variable_amount else ""),
                item.frequency_label,
                ", ".join(item.short_dates),
            )
        console.print(upcoming)

    if view.prompt_reset:
        console.print(
            "[bold yellow]Every bill is settled and your next paycheck is in a new month.[/bold yellow] "
            "Run [bold]paycadence new-cycle[/bold] to start fresh."
        )


if __name__ == "__main__":
    app()
