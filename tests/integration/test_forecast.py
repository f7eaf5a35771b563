from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from pocketledger.forecast import ALL_ACCOUNTS, ForecastCalculator
from pocketledger.ledger import AdjustmentLedger
from pocketledger.models import Forecast, shift_year_month
from pocketledger.repository import Repository
from tests.utils.builders import (
    make_account,
    make_expense,
    make_income,
    make_schedule,
    make_transfer,
)


@pytest.fixture()
def calculator(repository: Repository) -> ForecastCalculator:
    return ForecastCalculator(repository, AdjustmentLedger(repository))


@pytest.fixture()
def checking(repository: Repository) -> int:
    return repository.insert_account(make_account("Checking", initial_balance="1000")).id


@pytest.mark.sit
def test_single_expense_month(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    repository.insert_transaction(make_expense(checking, "200", dt.date(2024, 3, 10)))

    result = calculator.forecast_month(checking, "2024-03")

    assert result == Forecast(
        opening_balance=Decimal("1000"),
        income=Decimal("0"),
        expense=Decimal("200"),
        closing_balance=Decimal("800"),
        is_adjusted=False,
    )


@pytest.mark.sit
def test_months_before_activity_carry_initial_balance(
    calculator: ForecastCalculator, checking: int
) -> None:
    result = calculator.forecast_month(checking, "2023-06")

    assert result.opening_balance == Decimal("1000")
    assert result.closing_balance == Decimal("1000")


@pytest.mark.sit
def test_adjustment_replaces_closing_and_next_opening(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    repository.insert_transaction(make_expense(checking, "200", dt.date(2024, 3, 10)))
    calculator.ledger.set(checking, "2024-03", "500")
    repository.insert_transaction(make_income(checking, "50", dt.date(2024, 4, 2)))

    march = calculator.forecast_month(checking, "2024-03")
    april = calculator.forecast_month(checking, "2024-04")

    assert march.closing_balance == Decimal("500")
    assert march.is_adjusted is True
    assert march.expense == Decimal("200")
    assert april.opening_balance == Decimal("500")
    assert april.closing_balance == Decimal("550")
    assert april.is_adjusted is False


@pytest.mark.sit
def test_consecutive_months_are_continuous(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    repository.insert_transaction(make_expense(checking, "120", dt.date(2024, 1, 20)))
    repository.insert_transaction(make_income(checking, "75.50", dt.date(2024, 3, 1)))
    repository.insert_recurring(
        make_schedule(checking, "30", dt.date(2024, 2, 5), frequency="monthly")
    )
    calculator.ledger.set(checking, "2024-04", "900")

    for month in ("2024-01", "2024-02", "2024-03", "2024-04", "2024-05"):
        following = calculator.forecast_month(checking, shift_year_month(month, 1))
        assert calculator.forecast_month(checking, month).closing_balance == (
            following.opening_balance
        )

    rows = calculator.monthly_balances(checking, "2024-01", 6)
    for previous, current in zip(rows, rows[1:]):
        assert previous.closing_balance == current.opening_balance


@pytest.mark.sit
def test_recurring_projection_before_requested_month(
    repository: Repository, calculator: ForecastCalculator
) -> None:
    account = repository.insert_account(make_account("Savings")).id
    repository.insert_recurring(
        make_schedule(account, "100", dt.date(2024, 1, 15), type="income")
    )

    result = calculator.forecast_month(account, "2024-04")

    assert result.opening_balance == Decimal("300")
    assert result.income == Decimal("100")
    assert result.closing_balance == Decimal("400")


@pytest.mark.sit
def test_materialized_occurrences_are_not_projected_twice(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    repository.insert_transaction(make_expense(checking, "40", dt.date(2024, 1, 5)))
    repository.insert_recurring(
        make_schedule(
            checking,
            "40",
            dt.date(2024, 1, 5),
            next_execution=dt.date(2024, 2, 5),
            last_executed=dt.date(2024, 1, 5),
        )
    )

    january = calculator.forecast_month(checking, "2024-01")
    february = calculator.forecast_month(checking, "2024-02")

    assert january.expense == Decimal("40")
    assert february.expense == Decimal("40")
    assert february.closing_balance == Decimal("920")


@pytest.mark.sit
def test_transfer_moves_money_between_accounts(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    savings = repository.insert_account(make_account("Savings")).id
    repository.insert_transaction(make_transfer(checking, savings, "200", dt.date(2024, 3, 31)))

    source = calculator.forecast_month(checking, "2024-03")
    destination = calculator.forecast_month(savings, "2024-03")
    combined = calculator.forecast_month(ALL_ACCOUNTS, "2024-03")

    assert source.expense == Decimal("200")
    assert source.closing_balance == Decimal("800")
    assert destination.income == Decimal("200")
    assert destination.closing_balance == Decimal("200")
    assert combined.opening_balance == Decimal("1000")
    assert combined.closing_balance == Decimal("1000")


@pytest.mark.sit
def test_all_accounts_sums_adjusted_and_computed(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    cash = repository.insert_account(make_account("Cash", initial_balance="50")).id
    repository.insert_transaction(make_expense(cash, "20", dt.date(2024, 3, 3)))
    calculator.ledger.set(checking, "2024-03", "700")

    result = calculator.forecast_month(ALL_ACCOUNTS, "2024-03")

    assert result.opening_balance == Decimal("1050")
    assert result.expense == Decimal("20")
    assert result.closing_balance == Decimal("730")
    assert result.is_adjusted is True


@pytest.mark.sit
def test_unknown_account_gives_zero(calculator: ForecastCalculator) -> None:
    assert calculator.forecast_month(404, "2024-03") == Forecast.zero()
    assert calculator.balance_at(404, dt.date(2024, 3, 1)) == Decimal("0")


@pytest.mark.sit
def test_malformed_scope_gives_zero(calculator: ForecastCalculator, checking: int) -> None:
    rows = calculator.monthly_balances("checking", "2024-03", 2)

    assert [row.year_month for row in rows] == ["2024-03", "2024-04"]
    assert all(row.closing_balance == Decimal("0") for row in rows)
    assert calculator.forecast_month("checking", "2024-03") == Forecast.zero()
    assert calculator.balance_at("checking", dt.date(2024, 3, 1)) == Decimal("0")


@pytest.mark.sit
def test_monthly_balances_validation(calculator: ForecastCalculator, checking: int) -> None:
    with pytest.raises(ValueError):
        calculator.monthly_balances(checking, "2024-03", 0)

    with pytest.raises(ValueError):
        calculator.forecast_month(checking, "03-2024")


@pytest.mark.sit
def test_balance_at_ignores_adjustments(
    repository: Repository, calculator: ForecastCalculator, checking: int
) -> None:
    repository.insert_transaction(make_expense(checking, "200", dt.date(2024, 3, 10)))
    repository.insert_transaction(make_income(checking, "80", dt.date(2024, 3, 20)))
    calculator.ledger.set(checking, "2024-03", "500")

    assert calculator.balance_at(checking, dt.date(2024, 3, 15)) == Decimal("800")
    assert calculator.balance_at(checking, dt.date(2024, 3, 31)) == Decimal("880")
