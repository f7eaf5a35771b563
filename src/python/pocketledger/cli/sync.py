"""Sync CLI commands."""

from __future__ import annotations

import click

from pocketledger.cli.common import get_client
from pocketledger.sync import SyncResult


@click.group()
def sync() -> None:
    """Remote synchronization commands."""


def _report(result: SyncResult) -> None:
    if result.skipped:
        click.echo("Sync already in progress.")
        return
    if not result.ok:
        raise click.ClickException(f"Sync failed: {result.message}")
    click.echo(f"Sync complete ({result.mode.value}), sync id {result.state.sync_id}")


@sync.command("run")
@click.option(
    "--force-server",
    is_flag=True,
    help="Require remote data and take its balance adjustments over local ones.",
)
@click.option("--initial", is_flag=True, help="Mark this as the first sync of the device.")
@click.pass_context
def run_sync(ctx: click.Context, force_server: bool, initial: bool) -> None:
    """Synchronize local data with the remote store."""
    with get_client(ctx) as client:
        try:
            result = client.sync(force_server_data=force_server, initial_sync=initial)
        except ValueError as exc:
            raise click.UsageError(str(exc)) from exc
    _report(result)


@sync.command("force-local")
@click.pass_context
def force_local(ctx: click.Context) -> None:
    """Push local data over the remote copy on the next sync."""
    with get_client(ctx) as client:
        client.mark_force_local()
    click.echo("Local data will overwrite the remote copy on the next sync.")


@sync.command("force-server")
@click.pass_context
def force_server(ctx: click.Context) -> None:
    """Replace local data with the remote copy on the next sync."""
    with get_client(ctx) as client:
        client.mark_needs_server_data()
    click.echo("The remote copy will replace local data on the next sync.")


@sync.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the device's sync bookkeeping."""
    with get_client(ctx) as client:
        state = client.sync_state()
    click.echo(f"Device:    {state.device_id}")
    click.echo(f"Sync id:   {state.sync_id or '-'}")
    last = state.last_sync_time.isoformat() if state.last_sync_time else "never"
    click.echo(f"Last sync: {last}")
    pending = []
    if state.force_local_data:
        pending.append("force-local")
    if state.needs_server_data:
        pending.append("force-server")
    click.echo(f"Pending:   {', '.join(pending) or 'none'}")
