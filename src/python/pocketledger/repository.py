"""SQLite repository implementation for pocketledger."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import datetime as dt
from decimal import Decimal
import logging
import sqlite3
from typing import Any, Iterator

from pocketledger.exceptions import (
    DuplicateError,
    NotFoundError,
    SchemaIncomplete,
    StorageUnavailable,
)
from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Page,
    Preferences,
    RecurringTransaction,
    Snapshot,
    Transaction,
    TransactionType,
    account_name_key,
    format_timestamp,
    make_transaction,
    utc_now,
)
from pocketledger.persistence import PersistenceBackend
from pocketledger.schema import (
    ACCOUNTS,
    BALANCE_ADJUSTMENTS,
    ENTITY_TABLES,
    INDEX_DDL,
    MIGRATIONS,
    OPTIONAL_TABLES,
    RECURRING_TRANSACTIONS,
    SCHEMA_VERSION,
    TABLE_DDL,
    TRANSACTIONS,
    USER_PREFERENCES,
)

logger = logging.getLogger(__name__)


def _optional_date(value: dt.date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


class Repository(PersistenceBackend):
    """SQLite-backed persistence implementation."""

    def __init__(self, db_path: str | Path) -> None:
        """Create a repository for the given database path."""
        self.db_path = Path(db_path)
        self.connection: sqlite3.Connection | None = None
        self.schema_version: int | None = None

    def connect(self) -> None:
        """Open the database connection."""
        if self.connection is None:
            try:
                # Transactions are opened explicitly with BEGIN.
                self.connection = sqlite3.connect(str(self.db_path), isolation_level=None)
            except sqlite3.Error as exc:
                raise StorageUnavailable(f"Cannot open database {self.db_path}: {exc}") from exc
            self.connection.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def begin_transaction(self) -> None:
        """Begin a database transaction."""
        self._ensure_connection()
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._ensure_connection()
        self.connection.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._ensure_connection()
        self.connection.rollback()

    @property
    def in_transaction(self) -> bool:
        self._ensure_connection()
        return self.connection.in_transaction

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block in a transaction unless one is already open."""
        self._ensure_connection()
        if self.connection.in_transaction:
            yield
            return
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()

    # Schema management

    def inspect_schema_version(self) -> int:
        """Return the schema version recorded on disk (0 for a new file)."""
        self._ensure_connection()
        return int(self.connection.execute("PRAGMA user_version").fetchone()[0])

    def initialize(self) -> int:
        """Create or upgrade the schema and return the active version.

        The requested version is never lower than the one already on disk, and
        upgrades only add tables.
        """
        self._ensure_connection()
        try:
            on_disk = self.inspect_schema_version()
            target = max(SCHEMA_VERSION, on_disk)
            with self.transaction():
                for version in sorted(MIGRATIONS):
                    if version <= on_disk:
                        continue
                    for table in MIGRATIONS[version]:
                        self._create_table(table)
                self._ensure_default_preferences()
                if target != on_disk:
                    self.connection.execute(f"PRAGMA user_version = {int(target)}")
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Cannot initialize database {self.db_path}: {exc}") from exc
        if on_disk > SCHEMA_VERSION:
            logger.warning(
                "Database schema version %s is newer than %s; keeping it", on_disk, SCHEMA_VERSION
            )
        elif 0 < on_disk < SCHEMA_VERSION:
            logger.info("Upgraded database schema from version %s to %s", on_disk, target)
        for table in ENTITY_TABLES:
            if self.is_available(table):
                continue
            if table in OPTIONAL_TABLES:
                logger.warning("Table %s is missing; run repair to recreate it", table)
            else:
                logger.error("Required table %s is missing; run repair to recreate it", table)
        self.schema_version = target
        return target

    def is_available(self, table: str) -> bool:
        """Report whether a table exists in the local schema."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        ).fetchone()
        return row is not None

    def repair_schema(self) -> list[str]:
        """Recreate missing tables and indexes, leaving existing ones alone."""
        self._ensure_connection()
        created = []
        with self.transaction():
            for table in ENTITY_TABLES:
                if not self.is_available(table):
                    created.append(table)
                self._create_table(table)
            self._ensure_default_preferences()
        if created:
            logger.info("Recreated missing tables: %s", ", ".join(created))
        return created

    def rebuild(self) -> None:
        """Drop and recreate every entity table. All local data is lost."""
        self._ensure_connection()
        target = max(SCHEMA_VERSION, self.inspect_schema_version())
        with self.transaction():
            for table in ENTITY_TABLES:
                self.connection.execute(f"DROP TABLE IF EXISTS {table}")
            for table in ENTITY_TABLES:
                self._create_table(table)
            self._ensure_default_preferences()
            self.connection.execute(f"PRAGMA user_version = {int(target)}")
        logger.warning("Rebuilt local database %s", self.db_path)
        self.schema_version = target

    # Accounts

    def list_accounts(self, include_archived: bool = True) -> list[Account]:
        """Return accounts ordered by name."""
        self._ensure_connection()
        query = "SELECT * FROM accounts"
        if not include_archived:
            query += " WHERE isArchived = 0"
        rows = self.connection.execute(query + " ORDER BY name COLLATE NOCASE, id").fetchall()
        return [self._row_to_account(row) for row in rows]

    def get_account(self, account_id: int) -> Account:
        """Fetch a single account by id."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Account {account_id} not found")
        return self._row_to_account(row)

    def find_account_by_name(self, name: str) -> Account | None:
        """Look up an account by name, ignoring case."""
        key = account_name_key(name)
        for account in self.list_accounts():
            if account_name_key(account.name) == key:
                return account
        return None

    def insert_account(self, account: Account, preserve_timestamps: bool = False) -> Account:
        """Insert a new account and return the stored record."""
        self._ensure_connection()
        self._check_unique_name(account.name)
        created_at, updated_at = self._audit_stamps(account, preserve_timestamps)
        account_id = self._insert(
            ACCOUNTS,
            {
                "id": account.id,
                "name": account.name,
                "type": account.type.value,
                "initialBalance": str(account.initial_balance),
                "currency": account.currency,
                "icon": account.icon,
                "color": account.color,
                "isArchived": int(account.is_archived),
                "createdAt": created_at,
                "updatedAt": updated_at,
            },
        )
        return self.get_account(account_id)

    def update_account(self, account: Account, preserve_timestamps: bool = False) -> Account:
        """Update an account in place, keeping its creation time."""
        self._ensure_connection()
        self.get_account(account.id)
        self._check_unique_name(account.name, exclude_id=account.id)
        self._update(
            ACCOUNTS,
            account.id,
            {
                "name": account.name,
                "type": account.type.value,
                "initialBalance": str(account.initial_balance),
                "currency": account.currency,
                "icon": account.icon,
                "color": account.color,
                "isArchived": int(account.is_archived),
                "updatedAt": self._updated_stamp(account, preserve_timestamps),
            },
        )
        return self.get_account(account.id)

    def delete_account(self, account_id: int) -> None:
        """Delete an account with its transactions, schedules and adjustments."""
        self._ensure_connection()
        self.get_account(account_id)
        with self.transaction():
            self.connection.execute(
                "DELETE FROM transactions WHERE accountId = ? OR toAccountId = ?",
                (account_id, account_id),
            )
            self.connection.execute(
                "DELETE FROM recurringTransactions WHERE accountId = ? OR toAccountId = ?",
                (account_id, account_id),
            )
            if self.is_available(BALANCE_ADJUSTMENTS):
                self.connection.execute(
                    "DELETE FROM balanceAdjustments WHERE accountId = ?", (account_id,)
                )
            self.connection.execute("DELETE FROM accounts WHERE id = ?", (account_id,))

    # Transactions

    def list_transactions(
        self,
        account_id: int | None = None,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
        type: TransactionType | str | None = None,
    ) -> list[Transaction]:
        """List transactions, newest first, with optional filters.

        ``account_id`` matches both the source and the transfer destination.
        """
        self._ensure_connection()
        where_clause, params = self._transaction_filters(account_id, start_date, end_date, type)
        rows = self.connection.execute(
            f"SELECT * FROM transactions {where_clause} ORDER BY date DESC, id DESC",
            params,
        ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def list_transactions_page(
        self,
        page: int = 1,
        page_size: int = 20,
        account_id: int | None = None,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
        type: TransactionType | str | None = None,
    ) -> Page:
        """Return one page of transactions together with the total count."""
        if page < 1:
            raise ValueError("page must be at least 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._ensure_connection()
        where_clause, params = self._transaction_filters(account_id, start_date, end_date, type)
        total = self.connection.execute(
            f"SELECT COUNT(*) FROM transactions {where_clause}", params
        ).fetchone()[0]
        rows = self.connection.execute(
            f"""
            SELECT * FROM transactions {where_clause}
            ORDER BY date DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            [*params, page_size, (page - 1) * page_size],
        ).fetchall()
        return Page(items=[self._row_to_transaction(row) for row in rows], total=int(total))

    def get_transaction(self, transaction_id: int) -> Transaction:
        """Fetch a single transaction by id."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return self._row_to_transaction(row)

    def insert_transaction(
        self, transaction: Transaction, preserve_timestamps: bool = False
    ) -> Transaction:
        """Insert a transaction and return the stored record."""
        self._ensure_connection()
        created_at, updated_at = self._audit_stamps(transaction, preserve_timestamps)
        values = self._transaction_values(transaction)
        values.update(id=transaction.id, createdAt=created_at, updatedAt=updated_at)
        return self.get_transaction(self._insert(TRANSACTIONS, values))

    def update_transaction(
        self, transaction: Transaction, preserve_timestamps: bool = False
    ) -> Transaction:
        """Update a transaction in place, keeping its creation time."""
        self._ensure_connection()
        self.get_transaction(transaction.id)
        values = self._transaction_values(transaction)
        values["updatedAt"] = self._updated_stamp(transaction, preserve_timestamps)
        self._update(TRANSACTIONS, transaction.id, values)
        return self.get_transaction(transaction.id)

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        self._ensure_connection()
        self.get_transaction(transaction_id)
        self.connection.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    def delete_transactions_before(self, cutoff: dt.date) -> int:
        """Delete transactions dated before ``cutoff`` and return how many."""
        self._ensure_connection()
        cursor = self.connection.execute(
            "DELETE FROM transactions WHERE date < ?", (cutoff.isoformat(),)
        )
        return cursor.rowcount

    # Recurring transactions

    def list_recurring(self, account_id: int | None = None) -> list[RecurringTransaction]:
        """List recurring transactions ordered by next execution."""
        self._ensure_connection()
        query = "SELECT * FROM recurringTransactions"
        params: list[object] = []
        if account_id is not None:
            query += " WHERE accountId = ? OR toAccountId = ?"
            params.extend([account_id, account_id])
        rows = self.connection.execute(query + " ORDER BY nextExecution, id", params).fetchall()
        return [self._row_to_recurring(row) for row in rows]

    def list_due_recurring(self, on_date: dt.date) -> list[RecurringTransaction]:
        """List enabled schedules whose next execution is on or before a date."""
        self._ensure_connection()
        rows = self.connection.execute(
            """
            SELECT * FROM recurringTransactions
            WHERE isDisabled = 0 AND nextExecution <= ?
            ORDER BY nextExecution, id
            """,
            (on_date.isoformat(),),
        ).fetchall()
        return [self._row_to_recurring(row) for row in rows]

    def get_recurring(self, recurring_id: int) -> RecurringTransaction:
        """Fetch a single recurring transaction by id."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM recurringTransactions WHERE id = ?", (recurring_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Recurring transaction {recurring_id} not found")
        return self._row_to_recurring(row)

    def insert_recurring(
        self, recurring: RecurringTransaction, preserve_timestamps: bool = False
    ) -> RecurringTransaction:
        """Insert a recurring transaction and return the stored record."""
        self._ensure_connection()
        created_at, updated_at = self._audit_stamps(recurring, preserve_timestamps)
        values = self._recurring_values(recurring)
        values.update(id=recurring.id, createdAt=created_at, updatedAt=updated_at)
        return self.get_recurring(self._insert(RECURRING_TRANSACTIONS, values))

    def update_recurring(
        self, recurring: RecurringTransaction, preserve_timestamps: bool = False
    ) -> RecurringTransaction:
        """Update a recurring transaction in place, keeping its creation time."""
        self._ensure_connection()
        self.get_recurring(recurring.id)
        values = self._recurring_values(recurring)
        values["updatedAt"] = self._updated_stamp(recurring, preserve_timestamps)
        self._update(RECURRING_TRANSACTIONS, recurring.id, values)
        return self.get_recurring(recurring.id)

    def delete_recurring(self, recurring_id: int) -> None:
        """Delete a recurring transaction."""
        self._ensure_connection()
        self.get_recurring(recurring_id)
        self.connection.execute(
            "DELETE FROM recurringTransactions WHERE id = ?", (recurring_id,)
        )

    # Preferences

    def get_preferences(self) -> Preferences | None:
        """Return the preferences row, if any."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM userPreferences ORDER BY id LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return Preferences(
            id=row["id"],
            default_currency=row["defaultCurrency"],
            theme=row["theme"],
            date_format=row["dateFormat"],
            default_account_id=row["defaultAccount"],
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    def save_preferences(
        self, preferences: Preferences, preserve_timestamps: bool = False
    ) -> Preferences:
        """Write the singleton preferences row, creating it when absent."""
        self._ensure_connection()
        values = {
            "defaultCurrency": preferences.default_currency,
            "theme": preferences.theme.value,
            "dateFormat": preferences.date_format,
            "defaultAccount": preferences.default_account_id,
        }
        current = self.get_preferences()
        if current is None:
            created_at, updated_at = self._audit_stamps(preferences, preserve_timestamps)
            values.update(id=preferences.id, createdAt=created_at, updatedAt=updated_at)
            self._insert(USER_PREFERENCES, values)
        else:
            values["updatedAt"] = self._updated_stamp(preferences, preserve_timestamps)
            self._update(USER_PREFERENCES, current.id, values)
        return self.get_preferences()

    # Balance adjustments

    def list_adjustments(self, account_id: int | None = None) -> list[BalanceAdjustment]:
        """List adjustments ordered by account and month."""
        self._ensure_connection()
        if not self._readable(BALANCE_ADJUSTMENTS):
            return []
        query = "SELECT * FROM balanceAdjustments"
        params: list[object] = []
        if account_id is not None:
            query += " WHERE accountId = ?"
            params.append(account_id)
        rows = self.connection.execute(query + " ORDER BY accountId, yearMonth", params).fetchall()
        return [self._row_to_adjustment(row) for row in rows]

    def get_adjustment(self, account_id: int, year_month: str) -> BalanceAdjustment | None:
        """Return the adjustment for an account and month, if any."""
        self._ensure_connection()
        if not self._readable(BALANCE_ADJUSTMENTS):
            return None
        row = self.connection.execute(
            "SELECT * FROM balanceAdjustments WHERE accountId = ? AND yearMonth = ?",
            (account_id, year_month),
        ).fetchone()
        return self._row_to_adjustment(row) if row is not None else None

    def insert_adjustment(
        self, adjustment: BalanceAdjustment, preserve_timestamps: bool = False
    ) -> BalanceAdjustment:
        """Insert an adjustment; a second one for the same month is a duplicate."""
        self._ensure_connection()
        self._require(BALANCE_ADJUSTMENTS)
        created_at, updated_at = self._audit_stamps(adjustment, preserve_timestamps)
        try:
            self._insert(
                BALANCE_ADJUSTMENTS,
                {
                    "id": adjustment.id,
                    "accountId": adjustment.account_id,
                    "yearMonth": adjustment.year_month,
                    "adjustedBalance": str(adjustment.adjusted_balance),
                    "note": adjustment.note,
                    "createdAt": created_at,
                    "updatedAt": updated_at,
                },
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateError(
                "Duplicate balance adjustment",
                {"account_id": adjustment.account_id, "year_month": adjustment.year_month},
            ) from exc
        return self.get_adjustment(adjustment.account_id, adjustment.year_month)

    def upsert_adjustment(
        self, adjustment: BalanceAdjustment, preserve_timestamps: bool = False
    ) -> BalanceAdjustment:
        """Create or overwrite the adjustment for an account and month.

        An existing row keeps its id and creation time.
        """
        self._ensure_connection()
        self._require(BALANCE_ADJUSTMENTS)
        created_at, updated_at = self._audit_stamps(adjustment, preserve_timestamps)
        self.connection.execute(
            """
            INSERT INTO balanceAdjustments (
                accountId, yearMonth, adjustedBalance, note, createdAt, updatedAt
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (accountId, yearMonth) DO UPDATE SET
                adjustedBalance = excluded.adjustedBalance,
                note = excluded.note,
                updatedAt = excluded.updatedAt
            """,
            (
                adjustment.account_id,
                adjustment.year_month,
                str(adjustment.adjusted_balance),
                adjustment.note,
                created_at,
                updated_at,
            ),
        )
        return self.get_adjustment(adjustment.account_id, adjustment.year_month)

    def update_adjustment(
        self, adjustment: BalanceAdjustment, preserve_timestamps: bool = False
    ) -> BalanceAdjustment:
        """Update an adjustment by id."""
        self._ensure_connection()
        self._require(BALANCE_ADJUSTMENTS)
        row = self.connection.execute(
            "SELECT id FROM balanceAdjustments WHERE id = ?", (adjustment.id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Balance adjustment {adjustment.id} not found")
        self._update(
            BALANCE_ADJUSTMENTS,
            adjustment.id,
            {
                "accountId": adjustment.account_id,
                "yearMonth": adjustment.year_month,
                "adjustedBalance": str(adjustment.adjusted_balance),
                "note": adjustment.note,
                "updatedAt": self._updated_stamp(adjustment, preserve_timestamps),
            },
        )
        return self.get_adjustment(adjustment.account_id, adjustment.year_month)

    def delete_adjustment(self, account_id: int, year_month: str) -> bool:
        """Delete the adjustment for an account and month; True when one existed."""
        self._ensure_connection()
        self._require(BALANCE_ADJUSTMENTS)
        cursor = self.connection.execute(
            "DELETE FROM balanceAdjustments WHERE accountId = ? AND yearMonth = ?",
            (account_id, year_month),
        )
        return cursor.rowcount > 0

    # Maintenance and snapshots

    def delete_orphans(self) -> dict[str, int]:
        """Remove rows that reference accounts which no longer exist."""
        self._ensure_connection()
        removed = {}
        with self.transaction():
            for table in (TRANSACTIONS, RECURRING_TRANSACTIONS):
                cursor = self.connection.execute(
                    f"""
                    DELETE FROM {table}
                    WHERE accountId NOT IN (SELECT id FROM accounts)
                       OR (toAccountId IS NOT NULL
                           AND toAccountId NOT IN (SELECT id FROM accounts))
                    """
                )
                removed[table] = cursor.rowcount
            if self.is_available(BALANCE_ADJUSTMENTS):
                cursor = self.connection.execute(
                    """
                    DELETE FROM balanceAdjustments
                    WHERE accountId NOT IN (SELECT id FROM accounts)
                    """
                )
                removed[BALANCE_ADJUSTMENTS] = cursor.rowcount
        if any(removed.values()):
            logger.info("Removed orphaned rows: %s", removed)
        return removed

    def read_snapshot(self) -> Snapshot:
        """Return every entity kind as one snapshot."""
        self._ensure_connection()
        adjustments = None
        if self.is_available(BALANCE_ADJUSTMENTS):
            adjustments = self.list_adjustments()
        return Snapshot(
            accounts=self.list_accounts(),
            transactions=sorted(self.list_transactions(), key=lambda txn: txn.id),
            recurring_transactions=sorted(self.list_recurring(), key=lambda rec: rec.id),
            preferences=self.get_preferences(),
            balance_adjustments=adjustments,
        )

    def replace_all(self, snapshot: Snapshot) -> None:
        """Replace local entity tables with the snapshot contents.

        Kinds that are ``None`` in the snapshot are left untouched. Ids and
        timestamps are kept as given.
        """
        self._ensure_connection()
        with self.transaction():
            if snapshot.accounts is not None:
                self.connection.execute("DELETE FROM accounts")
            if snapshot.transactions is not None:
                self.connection.execute("DELETE FROM transactions")
            if snapshot.recurring_transactions is not None:
                self.connection.execute("DELETE FROM recurringTransactions")
            if snapshot.accounts is not None:
                for account in snapshot.accounts:
                    self.insert_account(account, preserve_timestamps=True)
            for transaction in snapshot.transactions or []:
                self.insert_transaction(transaction, preserve_timestamps=True)
            for recurring in snapshot.recurring_transactions or []:
                self.insert_recurring(recurring, preserve_timestamps=True)
            if snapshot.balance_adjustments is not None:
                if self.is_available(BALANCE_ADJUSTMENTS):
                    self.connection.execute("DELETE FROM balanceAdjustments")
                    for adjustment in snapshot.balance_adjustments:
                        self.insert_adjustment(adjustment, preserve_timestamps=True)
                else:
                    logger.warning(
                        "Skipping %d balance adjustments: table is missing",
                        len(snapshot.balance_adjustments),
                    )
            if snapshot.preferences is not None:
                self.connection.execute("DELETE FROM userPreferences")
                self.save_preferences(snapshot.preferences, preserve_timestamps=True)

    # Internal helpers

    def _ensure_connection(self) -> None:
        """Ensure the connection is initialized before use."""
        if self.connection is None:
            raise RuntimeError("Repository connection is not initialized")

    def _create_table(self, table: str) -> None:
        self.connection.execute(TABLE_DDL[table])
        for statement in INDEX_DDL[table]:
            self.connection.execute(statement)

    def _ensure_default_preferences(self) -> None:
        if not self.is_available(USER_PREFERENCES):
            return
        if self.get_preferences() is None:
            self.save_preferences(Preferences())

    def _readable(self, table: str) -> bool:
        if self.is_available(table):
            return True
        logger.warning("Table %s is not available; returning no rows", table)
        return False

    def _require(self, table: str) -> None:
        if not self.is_available(table):
            raise SchemaIncomplete(table)

    def _check_unique_name(self, name: str, exclude_id: int | None = None) -> None:
        existing = self.find_account_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateError(
                "Duplicate account name",
                {"name": name, "existing_id": existing.id},
            )

    def _insert(self, table: str, values: dict[str, Any]) -> int:
        if values.get("id") is None:
            values = {key: value for key, value in values.items() if key != "id"}
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cursor = self.connection.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(values.values()),
        )
        return int(values.get("id") or cursor.lastrowid)

    def _update(self, table: str, row_id: int, values: dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in values)
        self.connection.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [*values.values(), row_id],
        )

    @staticmethod
    def _audit_stamps(entity: Any, preserve_timestamps: bool) -> tuple[str, str]:
        now = utc_now()
        if not preserve_timestamps:
            stamp = format_timestamp(now)
            return stamp, stamp
        created_at = entity.created_at or entity.updated_at or now
        updated_at = entity.updated_at or created_at
        return format_timestamp(created_at), format_timestamp(updated_at)

    @staticmethod
    def _updated_stamp(entity: Any, preserve_timestamps: bool) -> str:
        if preserve_timestamps and entity.updated_at is not None:
            return format_timestamp(entity.updated_at)
        return format_timestamp(utc_now())

    @staticmethod
    def _transaction_filters(
        account_id: int | None,
        start_date: dt.date | None,
        end_date: dt.date | None,
        type: TransactionType | str | None,
    ) -> tuple[str, list[object]]:
        filters = []
        params: list[object] = []
        if account_id is not None:
            filters.append("(accountId = ? OR toAccountId = ?)")
            params.extend([account_id, account_id])
        if start_date is not None:
            filters.append("date >= ?")
            params.append(start_date.isoformat())
        if end_date is not None:
            filters.append("date <= ?")
            params.append(end_date.isoformat())
        if type is not None:
            filters.append("type = ?")
            params.append(TransactionType(type).value)
        where_clause = ""
        if filters:
            where_clause = "WHERE " + " AND ".join(filters)
        return where_clause, params

    @staticmethod
    def _transaction_values(transaction: Transaction) -> dict[str, Any]:
        return {
            "accountId": transaction.account_id,
            "toAccountId": getattr(transaction, "to_account_id", None),
            "amount": str(transaction.amount),
            "type": transaction.type.value,
            "category": _enum_value(getattr(transaction, "category", None)),
            "description": transaction.description,
            "date": transaction.date.isoformat(),
            "recurringId": transaction.recurring_id,
        }

    @staticmethod
    def _recurring_values(recurring: RecurringTransaction) -> dict[str, Any]:
        return {
            "accountId": recurring.account_id,
            "toAccountId": recurring.to_account_id,
            "amount": str(recurring.amount),
            "type": recurring.type.value,
            "category": _enum_value(recurring.category),
            "description": recurring.description,
            "frequency": recurring.frequency.value,
            "startDate": recurring.start_date.isoformat(),
            "endDate": _optional_date(recurring.end_date),
            "nextExecution": recurring.next_execution.isoformat(),
            "lastExecuted": _optional_date(recurring.last_executed),
            "isDisabled": int(recurring.disabled),
        }

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            initial_balance=Decimal(row["initialBalance"]),
            currency=row["currency"],
            icon=row["icon"],
            color=row["color"],
            is_archived=bool(row["isArchived"]),
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return make_transaction(
            row["type"],
            id=row["id"],
            account_id=row["accountId"],
            to_account_id=row["toAccountId"],
            amount=Decimal(row["amount"]),
            category=row["category"],
            description=row["description"],
            date=row["date"],
            recurring_id=row["recurringId"],
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    @staticmethod
    def _row_to_recurring(row: sqlite3.Row) -> RecurringTransaction:
        return RecurringTransaction(
            id=row["id"],
            type=row["type"],
            account_id=row["accountId"],
            to_account_id=row["toAccountId"],
            amount=Decimal(row["amount"]),
            category=row["category"],
            description=row["description"],
            frequency=row["frequency"],
            start_date=row["startDate"],
            end_date=row["endDate"],
            next_execution=row["nextExecution"],
            last_executed=row["lastExecuted"],
            disabled=bool(row["isDisabled"]),
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    @staticmethod
    def _row_to_adjustment(row: sqlite3.Row) -> BalanceAdjustment:
        return BalanceAdjustment(
            id=row["id"],
            account_id=row["accountId"],
            year_month=row["yearMonth"],
            adjusted_balance=Decimal(row["adjustedBalance"]),
            note=row["note"],
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )
