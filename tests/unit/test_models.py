from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from pocketledger.models import (
    Account,
    AccountType,
    BalanceAdjustment,
    Expense,
    ExpenseCategory,
    Income,
    Preferences,
    RecurringTransaction,
    SyncState,
    Transfer,
    TransactionType,
    make_transaction,
    month_bounds,
    parse_timestamp,
    parse_year_month,
    shift_year_month,
)


def test_account_defaults_and_normalization() -> None:
    account = Account(name="  savings ", currency="eur", initial_balance="150.25")

    assert account.name == "Savings"
    assert account.currency == "EUR"
    assert account.type is AccountType.CHECKING
    assert account.initial_balance == Decimal("150.25")
    assert account.is_archived is False


def test_account_validation() -> None:
    with pytest.raises(ValueError):
        Account(name="")

    with pytest.raises(ValueError):
        Account(name="Wallet", currency="EURO")

    with pytest.raises(ValueError):
        Account(name="Wallet", type="piggybank")


def test_account_allows_negative_initial_balance() -> None:
    account = Account(name="Card", type="creditCard", initial_balance=Decimal("-300"))

    assert account.initial_balance == Decimal("-300")
    assert account.type is AccountType.CREDIT_CARD


def test_expense_required_fields() -> None:
    expense = Expense(
        account_id=1,
        amount=Decimal("25.50"),
        date=dt.date(2024, 3, 5),
        description=" Groceries ",
    )

    assert expense.type is TransactionType.EXPENSE
    assert expense.category is None
    assert expense.description == "Groceries"
    assert expense.recurring_id is None


def test_transaction_amount_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Income(account_id=1, amount=Decimal("0"), date=dt.date(2024, 3, 5))

    with pytest.raises(ValueError):
        Expense(account_id=1, amount=Decimal("-5"), date=dt.date(2024, 3, 5))


def test_transfer_requires_distinct_accounts() -> None:
    with pytest.raises(ValueError):
        Transfer(account_id=1, to_account_id=1, amount=Decimal("10"), date=dt.date(2024, 3, 5))

    transfer = Transfer(
        account_id=1, to_account_id="2", amount="10", date="2024-03-05"
    )
    assert transfer.to_account_id == 2
    assert transfer.date == dt.date(2024, 3, 5)


def test_make_transaction_picks_variant() -> None:
    expense = make_transaction(
        "expense", account_id=1, amount="12", date="2024-03-05", category="fixed"
    )
    transfer = make_transaction(
        TransactionType.TRANSFER, account_id=1, amount="12", date="2024-03-05", to_account_id=2
    )

    assert isinstance(expense, Expense)
    assert expense.category is ExpenseCategory.FIXED
    assert isinstance(transfer, Transfer)


def test_make_transaction_rejects_foreign_fields() -> None:
    with pytest.raises(ValueError):
        make_transaction("income", account_id=1, amount="5", date="2024-03-05", category="fixed")

    with pytest.raises(ValueError):
        make_transaction("expense", account_id=1, amount="5", date="2024-03-05", to_account_id=2)

    with pytest.raises(ValueError):
        make_transaction("refund", account_id=1, amount="5", date="2024-03-05")


def test_recurring_defaults_next_execution_to_start() -> None:
    schedule = RecurringTransaction(
        type="income",
        account_id=1,
        amount="1000",
        frequency="monthly",
        start_date="2024-01-31",
    )

    assert schedule.next_execution == dt.date(2024, 1, 31)
    assert schedule.last_executed is None
    assert schedule.is_active_on(dt.date(2024, 2, 29))
    assert not schedule.is_active_on(dt.date(2024, 1, 30))


def test_recurring_validation() -> None:
    with pytest.raises(ValueError):
        RecurringTransaction(
            type="expense",
            account_id=1,
            amount="10",
            frequency="fortnightly",
            start_date=dt.date(2024, 1, 1),
        )

    with pytest.raises(ValueError):
        RecurringTransaction(
            type="expense",
            account_id=1,
            amount="10",
            frequency="weekly",
            start_date=dt.date(2024, 2, 1),
            end_date=dt.date(2024, 1, 1),
        )

    with pytest.raises(ValueError):
        RecurringTransaction(
            type="transfer",
            account_id=1,
            amount="10",
            frequency="weekly",
            start_date=dt.date(2024, 2, 1),
        )


def test_recurring_materializes_transaction() -> None:
    schedule = RecurringTransaction(
        type="transfer",
        account_id=1,
        to_account_id=2,
        amount="200",
        frequency="monthly",
        start_date=dt.date(2024, 1, 31),
        description="Savings plan",
        id=7,
    )

    transaction = schedule.materialize(dt.date(2024, 2, 29))

    assert isinstance(transaction, Transfer)
    assert transaction.date == dt.date(2024, 2, 29)
    assert transaction.recurring_id == 7
    assert transaction.id is None


def test_balance_adjustment_validation() -> None:
    adjustment = BalanceAdjustment(account_id=1, year_month="2024-03", adjusted_balance="-20")

    assert adjustment.adjusted_balance == Decimal("-20")

    with pytest.raises(ValueError):
        BalanceAdjustment(account_id=1, year_month="2024-3", adjusted_balance="10")

    with pytest.raises(ValueError):
        BalanceAdjustment(account_id=1, year_month="2024-03", adjusted_balance="ten")


def test_preferences_defaults() -> None:
    preferences = Preferences()

    assert preferences.default_currency == "EUR"
    assert preferences.date_format == "dd/MM/yyyy"
    assert preferences.default_account_id is None

    with pytest.raises(ValueError):
        Preferences(theme="neon")


def test_sync_state_gets_device_id() -> None:
    first = SyncState()
    second = SyncState()

    assert first.device_id.startswith("device_")
    assert first.device_id != second.device_id
    assert first.force_local_data is False
    assert first.needs_server_data is False


def test_parse_timestamp_normalizes_to_utc() -> None:
    stamp = parse_timestamp("2024-03-05T10:00:00Z")
    naive = parse_timestamp("2024-03-05T10:00:00")
    offset = parse_timestamp("2024-03-05T12:00:00+02:00")

    assert stamp == naive == offset
    assert stamp.tzinfo is not None
    assert parse_timestamp(None) is None

    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


def test_year_month_helpers() -> None:
    assert parse_year_month("2024-03") == (2024, 3)
    assert shift_year_month("2024-12", 1) == "2025-01"
    assert shift_year_month("2024-01", -1) == "2023-12"
    assert month_bounds("2024-02") == (dt.date(2024, 2, 1), dt.date(2024, 2, 29))

    with pytest.raises(ValueError):
        parse_year_month("2024-13")
