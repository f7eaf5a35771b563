"""Shared CLI helpers."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import click

from pocketledger.client import LedgerClient
from pocketledger.exceptions import NotFoundError
from pocketledger.models import Account, parse_year_month as _parse_year_month
from pocketledger.remote import FileRemoteStore, HttpRemoteStore, RemoteStore


def parse_date(value: str | None, field_name: str) -> dt.date | None:
    """Parse an ISO date string into a date."""
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM-DD format.", param_hint=field_name) from exc


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except Exception as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def parse_year_month(value: str, field_name: str) -> str:
    """Validate a YYYY-MM string."""
    try:
        _parse_year_month(value)
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM format.", param_hint=field_name) from exc
    return value


def resolve_account(client: LedgerClient, name: str) -> Account:
    """Find an account by name or stop with a CLI error."""
    try:
        return client.find_account(name)
    except NotFoundError as exc:
        raise click.ClickException(str(exc)) from exc


def format_amount(value: Decimal) -> str:
    return f"{value:,.2f}"


def get_client(ctx: click.Context) -> LedgerClient:
    """Build a ledger client from Click context.

    Options given on the command line override the config file.
    """
    payload = ctx.obj or {}
    remote: RemoteStore | None = None
    if payload.get("remote_url"):
        remote = HttpRemoteStore(payload["remote_url"])
    elif payload.get("remote_dir"):
        remote = FileRemoteStore(payload["remote_dir"])
    try:
        return LedgerClient(
            db_path=payload.get("db_path"),
            remote=remote,
            username=payload.get("username"),
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
