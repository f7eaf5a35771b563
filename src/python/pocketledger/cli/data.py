"""Data export, import and maintenance CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import click

from pocketledger.cli.common import get_client, resolve_account


@click.group()
def data() -> None:
    """Export, import and maintenance commands."""


@data.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--account", default=None, help="Export only this account.")
@click.pass_context
def export_data(ctx: click.Context, path: Path, account: str | None) -> None:
    """Write all data (or one account) to a JSON file."""
    with get_client(ctx) as client:
        account_id = resolve_account(client, account).id if account else None
        target = client.export_to_file(path, account_id=account_id)
    click.echo(f"Exported to {target}")


@data.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mode",
    type=click.Choice(["merge", "replace"]),
    default="merge",
    show_default=True,
    help="Merge with local data or replace it.",
)
@click.pass_context
def import_data(ctx: click.Context, path: Path, mode: str) -> None:
    """Load a JSON export into the local database."""
    with get_client(ctx) as client:
        try:
            snapshot = client.import_from_file(path, mode=mode)
        except (ValueError, json.JSONDecodeError) as exc:
            raise click.ClickException(f"Import failed: {exc}") from exc
    click.echo(
        f"Imported: {len(snapshot.accounts)} accounts, "
        f"{len(snapshot.transactions)} transactions now stored"
    )


@data.command("clean")
@click.option("--orphans", is_flag=True, help="Remove rows referencing deleted accounts.")
@click.option(
    "--older-than",
    "older_than",
    type=click.IntRange(min=1),
    default=None,
    help="Delete transactions older than this many months.",
)
@click.option("--repair", is_flag=True, help="Recreate missing tables.")
@click.pass_context
def clean(ctx: click.Context, orphans: bool, older_than: int | None, repair: bool) -> None:
    """Run maintenance tasks on the local database."""
    if not (orphans or older_than or repair):
        raise click.UsageError("Choose at least one of --orphans, --older-than, --repair.")
    with get_client(ctx) as client:
        if repair:
            created = client.repair_schema()
            click.echo(f"Recreated tables: {', '.join(created) or 'none'}")
        if orphans:
            removed = client.clean_orphans()
            click.echo(f"Removed orphaned rows: {sum(removed.values())}")
        if older_than:
            count = client.clean_old_transactions(months=older_than)
            click.echo(f"Removed {count} old transactions")
