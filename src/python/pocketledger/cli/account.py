"""Account CLI commands."""

from __future__ import annotations

import click

from pocketledger.cli.common import format_amount, get_client, parse_decimal, resolve_account
from pocketledger.exceptions import DuplicateError
from pocketledger.models import Account, AccountType


@click.group()
def account() -> None:
    """Account commands."""


@account.command("add")
@click.option("--name", required=True, help="Account name.")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([item.value for item in AccountType]),
    default=AccountType.CHECKING.value,
    show_default=True,
    help="Account type.",
)
@click.option("--initial-balance", default="0", show_default=True, help="Opening balance.")
@click.option("--currency", default="EUR", show_default=True, help="Currency code.")
@click.pass_context
def add_account(
    ctx: click.Context,
    name: str,
    account_type: str,
    initial_balance: str,
    currency: str,
) -> None:
    """Add an account."""
    balance = parse_decimal(initial_balance, "--initial-balance")
    try:
        new_account = Account(
            name=name, type=account_type, initial_balance=balance, currency=currency
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    with get_client(ctx) as client:
        try:
            record = client.add_account(new_account)
        except DuplicateError as exc:
            raise click.ClickException(f"Account {new_account.name!r} already exists.") from exc
    click.echo(f"Added account {record.id} ({record.name})")


@account.command("list")
@click.option("--active", is_flag=True, help="Hide archived accounts.")
@click.pass_context
def list_accounts(ctx: click.Context, active: bool) -> None:
    """List accounts with their opening balances.

    Examples:
        pocketledger account list
        pocketledger account list --active
    """
    with get_client(ctx) as client:
        accounts = client.list_accounts(include_archived=not active)

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Type':<12} {'Opening':>14} {'Currency':<8}")
    click.echo("-" * 74)
    for item in accounts:
        name = item.name + (" (archived)" if item.is_archived else "")
        click.echo(
            f"{item.id:<6} {name:<30} {item.type.value:<12} "
            f"{format_amount(item.initial_balance):>14} {item.currency:<8}"
        )


@account.command("archive")
@click.argument("name")
@click.pass_context
def archive_account(ctx: click.Context, name: str) -> None:
    """Archive an account."""
    with get_client(ctx) as client:
        record = client.archive_account(resolve_account(client, name).id)
    click.echo(f"Archived account {record.name}")


@account.command("restore")
@click.argument("name")
@click.pass_context
def restore_account(ctx: click.Context, name: str) -> None:
    """Restore an archived account."""
    with get_client(ctx) as client:
        record = client.restore_account(resolve_account(client, name).id)
    click.echo(f"Restored account {record.name}")


@account.command("delete")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_account(ctx: click.Context, name: str, yes: bool) -> None:
    """Delete an account with its transactions, schedules and adjustments."""
    if not yes:
        click.confirm(
            f"Delete account {name!r} and all of its transactions?", abort=True
        )
    with get_client(ctx) as client:
        record = resolve_account(client, name)
        client.delete_account(record.id)
    click.echo(f"Deleted account {record.name}")
