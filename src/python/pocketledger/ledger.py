"""Manual month-end balance adjustments."""

from __future__ import annotations

from decimal import Decimal
import logging
import sqlite3

from pocketledger.exceptions import SchemaIncomplete
from pocketledger.models import BalanceAdjustment, parse_year_month
from pocketledger.repository import Repository
from pocketledger.schema import BALANCE_ADJUSTMENTS

logger = logging.getLogger(__name__)


class AdjustmentLedger:
    """Read and write balance adjustments, degrading to neutral results.

    The ledger never raises for storage problems: reads return ``None`` or an
    empty list and writes return ``None`` or ``False``, with the failure logged.
    Invalid input (bad month, non-numeric balance) still raises ``ValueError``.
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def get(self, account_id: int, year_month: str) -> BalanceAdjustment | None:
        parse_year_month(year_month)
        try:
            return self.repository.get_adjustment(account_id, year_month)
        except sqlite3.Error as exc:
            logger.error("Failed to read adjustment %s/%s: %s", account_id, year_month, exc)
            return None

    def get_all_for_account(self, account_id: int) -> list[BalanceAdjustment]:
        try:
            return self.repository.list_adjustments(account_id)
        except sqlite3.Error as exc:
            logger.error("Failed to list adjustments for account %s: %s", account_id, exc)
            return []

    def set(
        self,
        account_id: int,
        year_month: str,
        adjusted_balance: Decimal | str | int | float,
        note: str | None = None,
    ) -> BalanceAdjustment | None:
        """Create or overwrite the adjustment for an account and month."""
        adjustment = BalanceAdjustment(
            account_id=account_id,
            year_month=year_month,
            adjusted_balance=adjusted_balance,
            note=note,
        )
        try:
            with self.repository.transaction():
                stored = self.repository.upsert_adjustment(adjustment)
        except SchemaIncomplete:
            logger.warning(
                "Cannot store adjustment for %s/%s: %s table is unavailable",
                account_id,
                year_month,
                BALANCE_ADJUSTMENTS,
            )
            return None
        except sqlite3.Error as exc:
            logger.error("Failed to store adjustment %s/%s: %s", account_id, year_month, exc)
            return None
        logger.debug("Adjusted %s/%s to %s", account_id, year_month, stored.adjusted_balance)
        return stored

    def delete(self, account_id: int, year_month: str) -> bool:
        """Remove the adjustment for an account and month; True when one existed."""
        parse_year_month(year_month)
        try:
            with self.repository.transaction():
                return self.repository.delete_adjustment(account_id, year_month)
        except SchemaIncomplete:
            logger.warning(
                "Cannot delete adjustment for %s/%s: %s table is unavailable",
                account_id,
                year_month,
                BALANCE_ADJUSTMENTS,
            )
            return False
        except sqlite3.Error as exc:
            logger.error("Failed to delete adjustment %s/%s: %s", account_id, year_month, exc)
            return False
