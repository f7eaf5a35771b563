"""Forecast CLI commands."""

from __future__ import annotations

import click

from pocketledger.cli.common import format_amount, get_client, parse_year_month, resolve_account
from pocketledger.forecast import ALL_ACCOUNTS
from pocketledger.client import LedgerClient


@click.group()
def forecast() -> None:
    """Monthly balance forecast commands."""


def _scope(client: LedgerClient, account: str | None) -> int | str:
    if account is None:
        return ALL_ACCOUNTS
    return resolve_account(client, account).id


@forecast.command("month")
@click.option("--account", default=None, help="Account name (all accounts when omitted).")
@click.option("--month", "year_month", required=True, help="Month in YYYY-MM.")
@click.pass_context
def forecast_month(ctx: click.Context, account: str | None, year_month: str) -> None:
    """Show opening, flows and closing balance for one month."""
    parse_year_month(year_month, "--month")
    with get_client(ctx) as client:
        result = client.forecast_month(_scope(client, account), year_month)
    click.echo(f"Month:   {year_month}")
    click.echo(f"Opening: {format_amount(result.opening_balance)}")
    click.echo(f"Income:  {format_amount(result.income)}")
    click.echo(f"Expense: {format_amount(result.expense)}")
    suffix = " (adjusted)" if result.is_adjusted else ""
    click.echo(f"Closing: {format_amount(result.closing_balance)}{suffix}")


@forecast.command("range")
@click.option("--account", default=None, help="Account name (all accounts when omitted).")
@click.option("--start", "start_month", required=True, help="First month in YYYY-MM.")
@click.option("--months", type=click.IntRange(min=1), default=12, show_default=True)
@click.pass_context
def forecast_range(
    ctx: click.Context, account: str | None, start_month: str, months: int
) -> None:
    """Show a table of monthly balances."""
    parse_year_month(start_month, "--start")
    with get_client(ctx) as client:
        rows = client.monthly_balances(_scope(client, account), start_month, months)
    click.echo(f"{'Month':<8} {'Opening':>14} {'Income':>12} {'Expense':>12} {'Closing':>14}")
    click.echo("-" * 64)
    for row in rows:
        marker = " *" if row.is_adjusted else ""
        click.echo(
            f"{row.year_month:<8} {format_amount(row.opening_balance):>14} "
            f"{format_amount(row.income):>12} {format_amount(row.expense):>12} "
            f"{format_amount(row.closing_balance):>14}{marker}"
        )
