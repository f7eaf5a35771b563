"""Balance adjustment CLI commands."""

from __future__ import annotations

import click

from pocketledger.cli.common import (
    format_amount,
    get_client,
    parse_decimal,
    parse_year_month,
    resolve_account,
)


@click.group()
def adjust() -> None:
    """Month-end balance adjustment commands."""


@adjust.command("set")
@click.option("--account", required=True, help="Account name.")
@click.option("--month", "year_month", required=True, help="Month in YYYY-MM.")
@click.option("--balance", "balance_value", required=True, help="Adjusted closing balance.")
@click.option("--note", default=None, help="Optional note.")
@click.pass_context
def set_adjustment(
    ctx: click.Context,
    account: str,
    year_month: str,
    balance_value: str,
    note: str | None,
) -> None:
    """Override an account's closing balance for a month."""
    parse_year_month(year_month, "--month")
    balance = parse_decimal(balance_value, "--balance")
    with get_client(ctx) as client:
        record = resolve_account(client, account)
        stored = client.set_adjustment(record.id, year_month, balance, note)
    if stored is None:
        raise click.ClickException("Adjustment could not be stored; see log for details.")
    balance_text = format_amount(stored.adjusted_balance)
    click.echo(f"{record.name} {year_month}: closing balance set to {balance_text}")


@adjust.command("get")
@click.option("--account", required=True, help="Account name.")
@click.option("--month", "year_month", required=True, help="Month in YYYY-MM.")
@click.pass_context
def get_adjustment(ctx: click.Context, account: str, year_month: str) -> None:
    """Show the adjustment for an account and month."""
    parse_year_month(year_month, "--month")
    with get_client(ctx) as client:
        stored = client.get_adjustment(resolve_account(client, account).id, year_month)
    if stored is None:
        click.echo("No adjustment.")
        return
    line = f"{stored.year_month}: {format_amount(stored.adjusted_balance)} {stored.note or ''}"
    click.echo(line.rstrip())


@adjust.command("list")
@click.option("--account", required=True, help="Account name.")
@click.pass_context
def list_adjustments(ctx: click.Context, account: str) -> None:
    """List adjustments for an account."""
    with get_client(ctx) as client:
        items = client.list_adjustments(resolve_account(client, account).id)
    if not items:
        click.echo("No adjustments found.")
        return
    for item in items:
        line = f"{item.year_month}  {format_amount(item.adjusted_balance):>14}  {item.note or ''}"
        click.echo(line.rstrip())


@adjust.command("delete")
@click.option("--account", required=True, help="Account name.")
@click.option("--month", "year_month", required=True, help="Month in YYYY-MM.")
@click.pass_context
def delete_adjustment(ctx: click.Context, account: str, year_month: str) -> None:
    """Remove the adjustment for an account and month."""
    parse_year_month(year_month, "--month")
    with get_client(ctx) as client:
        removed = client.delete_adjustment(resolve_account(client, account).id, year_month)
    click.echo("Adjustment removed." if removed else "No adjustment to remove.")
