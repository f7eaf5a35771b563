"""Transaction CLI commands."""

from __future__ import annotations

import click

from pocketledger.cli.common import (
    format_amount,
    get_client,
    parse_date,
    parse_decimal,
    resolve_account,
)
from pocketledger.exceptions import NotFoundError
from pocketledger.models import ExpenseCategory, TransactionType, make_transaction


@click.group()
def transaction() -> None:
    """Income, expense and transfer commands."""


@transaction.command("add")
@click.option(
    "--type",
    "kind",
    type=click.Choice([item.value for item in TransactionType]),
    required=True,
    help="Transaction type.",
)
@click.option("--account", required=True, help="Account name (source for transfers).")
@click.option("--to-account", default=None, help="Destination account name for transfers.")
@click.option("--amount", "amount_value", required=True, help="Positive amount.")
@click.option("--date", "date_value", required=True, help="Transaction date in YYYY-MM-DD.")
@click.option("--description", default="", help="Description.")
@click.option(
    "--category",
    type=click.Choice([item.value for item in ExpenseCategory]),
    default=None,
    help="Expense category.",
)
@click.pass_context
def add_transaction(
    ctx: click.Context,
    kind: str,
    account: str,
    to_account: str | None,
    amount_value: str,
    date_value: str,
    description: str,
    category: str | None,
) -> None:
    """Add a transaction.

    Examples:
        pocketledger transaction add --type expense --account Checking
            --amount 42.10 --date 2024-03-05
        pocketledger transaction add --type transfer --account Checking
            --to-account Savings --amount 200 --date 2024-03-31
    """
    amount = parse_decimal(amount_value, "--amount")
    date = parse_date(date_value, "--date")
    if kind == TransactionType.TRANSFER.value and not to_account:
        raise click.UsageError("--to-account is required for transfers.")
    if kind != TransactionType.TRANSFER.value and to_account:
        raise click.UsageError("--to-account is only valid for transfers.")
    if kind != TransactionType.EXPENSE.value and category:
        raise click.UsageError("--category is only valid for expenses.")
    with get_client(ctx) as client:
        source = resolve_account(client, account)
        destination = resolve_account(client, to_account) if to_account else None
        try:
            new_transaction = make_transaction(
                kind,
                account_id=source.id,
                to_account_id=destination.id if destination else None,
                amount=amount,
                date=date,
                description=description,
                category=category,
            )
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        record = client.add_transaction(new_transaction)
    click.echo(f"Added {record.type.value} {record.id}")


@transaction.command("list")
@click.option("--account", default=None, help="Only transactions touching this account.")
@click.option("--start-date", default=None, help="Start date in YYYY-MM-DD.")
@click.option("--end-date", default=None, help="End date in YYYY-MM-DD.")
@click.option("--page", type=int, default=1, show_default=True, help="Page number.")
@click.option("--page-size", type=int, default=20, show_default=True, help="Rows per page.")
@click.pass_context
def list_transactions(
    ctx: click.Context,
    account: str | None,
    start_date: str | None,
    end_date: str | None,
    page: int,
    page_size: int,
) -> None:
    """List transactions, newest first."""
    start = parse_date(start_date, "--start-date")
    end = parse_date(end_date, "--end-date")
    with get_client(ctx) as client:
        account_id = resolve_account(client, account).id if account else None
        try:
            result = client.list_transactions_page(
                page=page,
                page_size=page_size,
                account_id=account_id,
                start_date=start,
                end_date=end,
            )
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        names = {item.id: item.name for item in client.list_accounts()}

    if not result.items:
        click.echo("No transactions found.")
        return
    for item in result.items:
        target = names.get(item.account_id, str(item.account_id))
        if item.type is TransactionType.TRANSFER:
            target += " -> " + names.get(item.to_account_id, str(item.to_account_id))
        click.echo(
            f"{item.id:<6} {item.date.isoformat()} {item.type.value:<9} "
            f"{format_amount(item.amount):>12}  {target}  {item.description}"
        )
    click.echo(f"Page {page} ({len(result.items)} of {result.total})")


@transaction.command("delete")
@click.argument("transaction_id", type=int)
@click.pass_context
def delete_transaction(ctx: click.Context, transaction_id: int) -> None:
    """Delete a transaction by id."""
    with get_client(ctx) as client:
        try:
            client.delete_transaction(transaction_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted transaction {transaction_id}")
