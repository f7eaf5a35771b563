"""pocketledger CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from pocketledger.__version__ import __version__
from pocketledger.cli.account import account
from pocketledger.cli.adjustment import adjust
from pocketledger.cli.data import data
from pocketledger.cli.forecast import forecast
from pocketledger.cli.recurring import recurring
from pocketledger.cli.sync import sync
from pocketledger.cli.transaction import transaction


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pocketledger")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the pocketledger database.",
)
@click.option(
    "--remote-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory used as the remote snapshot store.",
)
@click.option("--remote-url", default=None, help="Base URL of the remote storage service.")
@click.option("--username", default=None, help="Remote account name.")
@click.pass_context
def main(
    ctx: click.Context,
    db_path: Path | None,
    remote_dir: Path | None,
    remote_url: str | None,
    username: str | None,
) -> None:
    """pocketledger CLI entry point."""
    ctx.obj = {
        "db_path": db_path,
        "remote_dir": remote_dir,
        "remote_url": remote_url,
        "username": username,
    }


main.add_command(account)
main.add_command(transaction)
main.add_command(adjust)
main.add_command(forecast)
main.add_command(recurring)
main.add_command(sync)
main.add_command(data)


if __name__ == "__main__":
    main()
