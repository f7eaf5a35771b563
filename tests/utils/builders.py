"""Entity builders shared by unit and integration tests."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Expense,
    Income,
    RecurringTransaction,
    Snapshot,
    Transfer,
)

EARLY = dt.datetime(2024, 1, 1, 9, 0, tzinfo=dt.timezone.utc)
LATE = dt.datetime(2024, 6, 1, 9, 0, tzinfo=dt.timezone.utc)


def make_account(name: str = "Checking", id: int | None = None, **fields) -> Account:
    fields.setdefault("initial_balance", Decimal("0"))
    return Account(name=name, id=id, **fields)


def make_income(account_id: int, amount: str, day: dt.date, **fields) -> Income:
    return Income(account_id=account_id, amount=Decimal(amount), date=day, **fields)


def make_expense(account_id: int, amount: str, day: dt.date, **fields) -> Expense:
    return Expense(account_id=account_id, amount=Decimal(amount), date=day, **fields)


def make_transfer(
    account_id: int, to_account_id: int, amount: str, day: dt.date, **fields
) -> Transfer:
    return Transfer(
        account_id=account_id,
        to_account_id=to_account_id,
        amount=Decimal(amount),
        date=day,
        **fields,
    )


def make_schedule(account_id: int, amount: str, start: dt.date, **fields) -> RecurringTransaction:
    fields.setdefault("type", "expense")
    fields.setdefault("frequency", "monthly")
    return RecurringTransaction(
        account_id=account_id, amount=Decimal(amount), start_date=start, **fields
    )


def make_adjustment(account_id: int, year_month: str, balance: str, **fields) -> BalanceAdjustment:
    return BalanceAdjustment(
        account_id=account_id, year_month=year_month, adjusted_balance=Decimal(balance), **fields
    )


def remote_snapshot(**kinds) -> Snapshot:
    """Remote snapshot where every kind defaults to an empty list."""
    kinds.setdefault("accounts", [])
    kinds.setdefault("transactions", [])
    kinds.setdefault("recurring_transactions", [])
    kinds.setdefault("balance_adjustments", [])
    return Snapshot(**kinds)
