"""Monthly balance forecasts layered with manual adjustments."""

from __future__ import annotations

from collections import defaultdict
import datetime as dt
from decimal import Decimal
import logging
import sqlite3

from pocketledger.exceptions import NotFoundError
from pocketledger.ledger import AdjustmentLedger
from pocketledger.models import (
    Account,
    Forecast,
    MonthlyBalance,
    TransactionType,
    month_bounds,
    parse_year_month,
    shift_year_month,
    year_month_of,
)
from pocketledger.recurring import occurrences
from pocketledger.repository import Repository

logger = logging.getLogger(__name__)

ALL_ACCOUNTS = "all"
ZERO = Decimal("0")


def _signed_flow(
    type: TransactionType, account_id: int, to_account_id: int | None, owner_id: int
) -> tuple[str, bool]:
    """Classify a movement for ``owner_id`` as ("income"|"expense", applies)."""
    if type is TransactionType.TRANSFER:
        if to_account_id == owner_id:
            return "income", True
        return "expense", account_id == owner_id
    if account_id != owner_id:
        return "", False
    return ("income" if type is TransactionType.INCOME else "expense"), True


class ForecastCalculator:
    """Compute monthly opening, flows and closing balances.

    Each account is folded forward month by month from its initial balance,
    starting at its earliest activity. A month with an adjustment closes on
    the adjusted value, which then opens the following month.
    """

    def __init__(self, repository: Repository, ledger: AdjustmentLedger | None = None) -> None:
        self.repository = repository
        self.ledger = ledger or AdjustmentLedger(repository)

    def forecast_month(self, scope: int | str, year_month: str) -> Forecast:
        """Return the forecast for one account, or ``ALL_ACCOUNTS``, in a month."""
        rows = self.monthly_balances(scope, year_month, 1)
        if not rows:
            return Forecast.zero()
        row = rows[0]
        return Forecast(
            opening_balance=row.opening_balance,
            income=row.income,
            expense=row.expense,
            closing_balance=row.closing_balance,
            is_adjusted=row.is_adjusted,
        )

    def monthly_balances(
        self, scope: int | str, start_year_month: str, months: int
    ) -> list[MonthlyBalance]:
        """Return consecutive monthly rows starting at ``start_year_month``.

        An unknown account or a storage failure yields zeroed rows.
        """
        parse_year_month(start_year_month)
        if months < 1:
            raise ValueError("months must be at least 1")
        last_year_month = shift_year_month(start_year_month, months - 1)
        try:
            accounts = self._accounts_in_scope(scope)
            per_account = [
                self._account_rows(account, start_year_month, last_year_month)
                for account in accounts
            ]
        except NotFoundError:
            logger.warning("Forecast requested for unknown account %r", scope)
            return self._zero_rows(start_year_month, months)
        except sqlite3.Error as exc:
            logger.error("Forecast failed for %r: %s", scope, exc)
            return self._zero_rows(start_year_month, months)
        return self._combine(per_account, start_year_month, months)

    def balance_at(self, scope: int | str, on_date: dt.date) -> Decimal:
        """Actual balance on a date from recorded transactions only."""
        try:
            accounts = self._accounts_in_scope(scope)
            total = ZERO
            for account in accounts:
                total += account.initial_balance
                for txn in self.repository.list_transactions(
                    account_id=account.id, end_date=on_date
                ):
                    kind, applies = _signed_flow(
                        txn.type, txn.account_id, getattr(txn, "to_account_id", None), account.id
                    )
                    if applies:
                        total += txn.amount if kind == "income" else -txn.amount
            return total
        except NotFoundError:
            logger.warning("Balance requested for unknown account %r", scope)
            return ZERO
        except sqlite3.Error as exc:
            logger.error("Balance lookup failed for %r: %s", scope, exc)
            return ZERO

    def _accounts_in_scope(self, scope: int | str) -> list[Account]:
        if scope == ALL_ACCOUNTS:
            return self.repository.list_accounts()
        try:
            account_id = int(scope)
        except (TypeError, ValueError) as exc:
            raise NotFoundError(f"Account {scope!r} not found") from exc
        return [self.repository.get_account(account_id)]

    def _account_rows(
        self, account: Account, first_year_month: str, last_year_month: str
    ) -> list[MonthlyBalance]:
        _, last_day = month_bounds(last_year_month)
        income: dict[str, Decimal] = defaultdict(lambda: ZERO)
        expense: dict[str, Decimal] = defaultdict(lambda: ZERO)

        def book(kind: str, day: dt.date, amount: Decimal) -> None:
            bucket = income if kind == "income" else expense
            bucket[year_month_of(day)] += amount

        for txn in self.repository.list_transactions(account_id=account.id, end_date=last_day):
            kind, applies = _signed_flow(
                txn.type, txn.account_id, getattr(txn, "to_account_id", None), account.id
            )
            if applies:
                book(kind, txn.date, txn.amount)

        adjustments = {
            adjustment.year_month: adjustment
            for adjustment in self.ledger.get_all_for_account(account.id)
            if adjustment.year_month <= last_year_month
        }

        schedules = []
        for schedule in self.repository.list_recurring(account_id=account.id):
            kind, applies = _signed_flow(
                schedule.type, schedule.account_id, schedule.to_account_id, account.id
            )
            if applies and not schedule.disabled and schedule.next_execution <= last_day:
                schedules.append((kind, schedule))

        origin = min(
            [
                first_year_month,
                *income,
                *expense,
                *adjustments,
                *(year_month_of(schedule.next_execution) for _, schedule in schedules),
            ]
        )
        origin_day, _ = month_bounds(origin)
        for kind, schedule in schedules:
            for day in occurrences(schedule, origin_day, last_day):
                book(kind, day, schedule.amount)

        rows = []
        balance = account.initial_balance
        month = origin
        while month <= last_year_month:
            opening = balance
            month_income = income.get(month, ZERO)
            month_expense = expense.get(month, ZERO)
            adjustment = adjustments.get(month)
            if adjustment is not None:
                closing = adjustment.adjusted_balance
            else:
                closing = opening + month_income - month_expense
            if month >= first_year_month:
                rows.append(
                    MonthlyBalance(
                        year_month=month,
                        opening_balance=opening,
                        income=month_income,
                        expense=month_expense,
                        closing_balance=closing,
                        is_adjusted=adjustment is not None,
                    )
                )
            balance = closing
            month = shift_year_month(month, 1)
        return rows

    @staticmethod
    def _combine(
        per_account: list[list[MonthlyBalance]], start_year_month: str, months: int
    ) -> list[MonthlyBalance]:
        combined = []
        for index in range(months):
            month = shift_year_month(start_year_month, index)
            rows = [account_rows[index] for account_rows in per_account]
            combined.append(
                MonthlyBalance(
                    year_month=month,
                    opening_balance=sum((row.opening_balance for row in rows), ZERO),
                    income=sum((row.income for row in rows), ZERO),
                    expense=sum((row.expense for row in rows), ZERO),
                    closing_balance=sum((row.closing_balance for row in rows), ZERO),
                    is_adjusted=any(row.is_adjusted for row in rows),
                )
            )
        return combined

    @staticmethod
    def _zero_rows(start_year_month: str, months: int) -> list[MonthlyBalance]:
        return [
            MonthlyBalance(shift_year_month(start_year_month, index), ZERO, ZERO, ZERO, ZERO)
            for index in range(months)
        ]
