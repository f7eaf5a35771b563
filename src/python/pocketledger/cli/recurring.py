"""Recurring transaction CLI commands."""

from __future__ import annotations

import datetime as dt

import click

from pocketledger.cli.common import (
    format_amount,
    get_client,
    parse_date,
    parse_decimal,
    resolve_account,
)
from pocketledger.models import (
    ExpenseCategory,
    Frequency,
    RecurringTransaction,
    TransactionType,
)


@click.group()
def recurring() -> None:
    """Recurring transaction commands."""


@recurring.command("add")
@click.option(
    "--type",
    "kind",
    type=click.Choice([item.value for item in TransactionType]),
    required=True,
    help="Transaction type produced by the schedule.",
)
@click.option("--account", required=True, help="Account name (source for transfers).")
@click.option("--to-account", default=None, help="Destination account name for transfers.")
@click.option("--amount", "amount_value", required=True, help="Positive amount.")
@click.option(
    "--frequency",
    type=click.Choice([item.value for item in Frequency]),
    default=Frequency.MONTHLY.value,
    show_default=True,
)
@click.option("--start", "start_value", required=True, help="First occurrence in YYYY-MM-DD.")
@click.option("--end", "end_value", default=None, help="Last possible occurrence in YYYY-MM-DD.")
@click.option("--description", default="", help="Description.")
@click.option(
    "--category",
    type=click.Choice([item.value for item in ExpenseCategory]),
    default=None,
    help="Expense category.",
)
@click.pass_context
def add_recurring(
    ctx: click.Context,
    kind: str,
    account: str,
    to_account: str | None,
    amount_value: str,
    frequency: str,
    start_value: str,
    end_value: str | None,
    description: str,
    category: str | None,
) -> None:
    """Add a recurring transaction."""
    amount = parse_decimal(amount_value, "--amount")
    start = parse_date(start_value, "--start")
    end = parse_date(end_value, "--end")
    with get_client(ctx) as client:
        source = resolve_account(client, account)
        destination = resolve_account(client, to_account) if to_account else None
        try:
            schedule = RecurringTransaction(
                type=kind,
                account_id=source.id,
                to_account_id=destination.id if destination else None,
                amount=amount,
                frequency=frequency,
                start_date=start,
                end_date=end,
                description=description,
                category=category,
            )
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        record = client.add_recurring(schedule)
    click.echo(f"Added recurring {record.type.value} {record.id}, next on {record.next_execution}")


@recurring.command("list")
@click.option("--account", default=None, help="Only schedules touching this account.")
@click.pass_context
def list_recurring(ctx: click.Context, account: str | None) -> None:
    """List recurring transactions."""
    with get_client(ctx) as client:
        account_id = resolve_account(client, account).id if account else None
        items = client.list_recurring(account_id=account_id)
    if not items:
        click.echo("No recurring transactions found.")
        return
    for item in items:
        state = "disabled" if item.disabled else f"next {item.next_execution.isoformat()}"
        click.echo(
            f"{item.id:<6} {item.type.value:<9} {item.frequency.value:<10} "
            f"{format_amount(item.amount):>12}  {state}  {item.description}"
        )


@recurring.command("run")
@click.option("--today", "today_value", default=None, help="Reference date in YYYY-MM-DD.")
@click.pass_context
def run_recurring(ctx: click.Context, today_value: str | None) -> None:
    """Create the transactions for every due occurrence."""
    today = parse_date(today_value, "--today") or dt.date.today()
    with get_client(ctx) as client:
        created = client.run_recurring(today)
    click.echo(f"Created {len(created)} transactions")
