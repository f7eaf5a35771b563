"""Client orchestration layer for pocketledger."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, TypeVar
import datetime as dt
from decimal import Decimal
import json
import logging
import os

from dateutil.relativedelta import relativedelta

from pocketledger.__version__ import __version__
from pocketledger.exceptions import NotFoundError
from pocketledger.forecast import ForecastCalculator
from pocketledger.ledger import AdjustmentLedger
from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Forecast,
    MonthlyBalance,
    Page,
    Preferences,
    RecurringTransaction,
    Snapshot,
    SyncState,
    Transaction,
    TransactionType,
    make_transaction,
    utc_now,
)
from pocketledger.persistence import PersistenceBackend
from pocketledger.recurring import execute_due
from pocketledger.remote import (
    DEFAULT_TIMEOUT_SECONDS,
    Credentials,
    FileRemoteStore,
    HttpRemoteStore,
    RemoteStore,
)
from pocketledger.repository import Repository
from pocketledger.snapshot import decode_snapshot, encode_snapshot
from pocketledger.sync import (
    SyncOrchestrator,
    SyncResult,
    SyncSession,
    SyncSettings,
    SyncStateStore,
    apply_merge,
)

T = TypeVar("T")

# Configure logging
logger = logging.getLogger("pocketledger")
log_level = os.environ.get('LOGGING_LEVEL', 'INFO').upper()
logger.setLevel(getattr(logging, log_level, logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
    logger.addHandler(handler)

CONFIG_FILE_NAME = "config.json"
DEFAULT_HOME = Path.home() / ".pocketledger"
SYNC_STATE_SUFFIX = ".sync.json"
EXPORT_FORMAT_VERSION = 1
IMPORT_MODES = {"replace", "merge"}


def config_home() -> Path:
    """Directory holding the config file, from ``POCKETLEDGER_HOME``."""
    return Path(os.environ.get("POCKETLEDGER_HOME", str(DEFAULT_HOME)))


class LedgerClient:
    """Coordinate repository operations, forecasts and synchronization."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        repository: PersistenceBackend | None = None,
        remote: RemoteStore | None = None,
        username: str | None = None,
        password: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the client with a repository backend.

        Args:
            db_path: Path to the SQLite database; falls back to ``db_path`` in config
            repository: Optional custom persistence backend
            remote: Remote snapshot store; falls back to the ``remote`` config section
            username: Remote account name; falls back to ``username`` in config
            password: Remote password; falls back to ``POCKETLEDGER_PASSWORD``
            config: Explicit configuration instead of the config file
        """
        self.config = config if config is not None else self._load_config()
        self.db_path = self._resolve_db_path(db_path, repository)
        self.repository = repository or Repository(self.db_path)
        self.remote = remote or self._build_remote()
        self.username = username or self.config.get("username")
        self.password = password if password is not None else os.environ.get(
            "POCKETLEDGER_PASSWORD", ""
        )
        self.sync_settings = SyncSettings.from_config(self.config.get("sync"))
        self.sync_session = SyncSession(self.sync_settings)
        self.ledger = AdjustmentLedger(self.repository)
        self.forecaster = ForecastCalculator(self.repository, self.ledger)
        self._orchestrator: SyncOrchestrator | None = None

    def __enter__(self) -> "LedgerClient":
        """Open the repository connection and bring the schema up to date."""
        self.repository.connect()
        self.repository.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the repository connection."""
        self.close()

    def close(self) -> None:
        """Close the repository connection."""
        self.repository.close()

    def _resolve_db_path(
        self,
        db_path: str | Path | None,
        repository: PersistenceBackend | None,
    ) -> Path:
        """Resolve the database path from arguments or config."""
        if repository is not None and db_path is None:
            return Path(getattr(repository, "db_path", ""))
        if db_path is not None:
            return Path(db_path)
        resolved = self.config.get("db_path")
        if not resolved:
            raise ValueError("db_path is required when it is missing from the config file")
        return Path(resolved).expanduser()

    def _load_config(self) -> dict:
        """Load config file if present, else return empty config."""
        config_path = config_home() / CONFIG_FILE_NAME
        if not config_path.exists():
            return {}
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            return {}
        return payload

    def _build_remote(self) -> RemoteStore | None:
        """Create the remote store named in the ``remote`` config section."""
        section = self.config.get("remote") or {}
        timeout = float(self.config.get("timeout", DEFAULT_TIMEOUT_SECONDS))
        if section.get("url"):
            return HttpRemoteStore(section["url"], timeout=timeout)
        if section.get("directory"):
            return FileRemoteStore(Path(section["directory"]).expanduser())
        return None

    def _run_transaction(self, action: Callable[[], T]) -> T:
        """Run repository work inside a transaction."""
        self.repository.begin_transaction()
        try:
            result = action()
            self.repository.commit()
            return result
        except Exception:
            self.repository.rollback()
            raise

    # Accounts

    def add_account(self, account: Account) -> Account:
        """Add an account and return the stored record."""
        return self._run_transaction(lambda: self.repository.insert_account(account))

    def get_account(self, account_id: int) -> Account:
        return self.repository.get_account(account_id)

    def find_account(self, name: str) -> Account:
        """Look up an account by name, ignoring case."""
        account = self.repository.find_account_by_name(name)
        if account is None:
            raise NotFoundError(f"Account {name!r} not found")
        return account

    def list_accounts(self, include_archived: bool = True) -> list[Account]:
        return self.repository.list_accounts(include_archived=include_archived)

    def update_account(self, account_id: int, **changes: Any) -> Account:
        """Apply field changes to an account and return the updated record."""

        def action() -> Account:
            current = self.repository.get_account(account_id)
            return self.repository.update_account(replace(current, **changes))

        return self._run_transaction(action)

    def archive_account(self, account_id: int) -> Account:
        return self.update_account(account_id, is_archived=True)

    def restore_account(self, account_id: int) -> Account:
        return self.update_account(account_id, is_archived=False)

    def delete_account(self, account_id: int) -> None:
        """Delete an account and everything that references it."""
        self._run_transaction(lambda: self.repository.delete_account(account_id))

    # Transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        """Add a transaction after checking its accounts exist."""

        def action() -> Transaction:
            self._check_accounts(transaction)
            return self.repository.insert_transaction(transaction)

        return self._run_transaction(action)

    def get_transaction(self, transaction_id: int) -> Transaction:
        return self.repository.get_transaction(transaction_id)

    def list_transactions(
        self,
        account_id: int | None = None,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
        type: TransactionType | str | None = None,
    ) -> list[Transaction]:
        """List transactions, newest first."""
        return self.repository.list_transactions(
            account_id=account_id, start_date=start_date, end_date=end_date, type=type
        )

    def list_transactions_page(self, page: int = 1, page_size: int = 20, **filters: Any) -> Page:
        return self.repository.list_transactions_page(page=page, page_size=page_size, **filters)

    def update_transaction(self, transaction_id: int, **changes: Any) -> Transaction:
        """Apply field changes to a transaction.

        Passing ``type`` rebuilds the transaction as another variant.
        """

        def action() -> Transaction:
            current = self.repository.get_transaction(transaction_id)
            fields = {
                "type": current.type,
                "account_id": current.account_id,
                "amount": current.amount,
                "date": current.date,
                "description": current.description,
                "to_account_id": getattr(current, "to_account_id", None),
                "category": getattr(current, "category", None),
                "recurring_id": current.recurring_id,
                "id": current.id,
                "created_at": current.created_at,
            }
            fields.update(changes)
            kind = TransactionType(fields["type"])
            if kind is not TransactionType.TRANSFER and "to_account_id" not in changes:
                fields["to_account_id"] = None
            if kind is not TransactionType.EXPENSE and "category" not in changes:
                fields["category"] = None
            updated = make_transaction(**fields)
            self._check_accounts(updated)
            return self.repository.update_transaction(updated)

        return self._run_transaction(action)

    def delete_transaction(self, transaction_id: int) -> None:
        self._run_transaction(lambda: self.repository.delete_transaction(transaction_id))

    def _check_accounts(self, entity: Transaction | RecurringTransaction) -> None:
        self.repository.get_account(entity.account_id)
        to_account_id = getattr(entity, "to_account_id", None)
        if to_account_id is not None:
            self.repository.get_account(to_account_id)

    # Recurring transactions

    def add_recurring(self, recurring: RecurringTransaction) -> RecurringTransaction:
        def action() -> RecurringTransaction:
            self._check_accounts(recurring)
            return self.repository.insert_recurring(recurring)

        return self._run_transaction(action)

    def get_recurring(self, recurring_id: int) -> RecurringTransaction:
        return self.repository.get_recurring(recurring_id)

    def list_recurring(self, account_id: int | None = None) -> list[RecurringTransaction]:
        return self.repository.list_recurring(account_id=account_id)

    def update_recurring(self, recurring_id: int, **changes: Any) -> RecurringTransaction:
        def action() -> RecurringTransaction:
            current = self.repository.get_recurring(recurring_id)
            updated = replace(current, **changes)
            self._check_accounts(updated)
            return self.repository.update_recurring(updated)

        return self._run_transaction(action)

    def delete_recurring(self, recurring_id: int) -> None:
        self._run_transaction(lambda: self.repository.delete_recurring(recurring_id))

    def run_recurring(self, today: dt.date | None = None) -> list[Transaction]:
        """Materialize every recurring occurrence due by ``today``."""
        today = today or dt.date.today()
        return self._run_transaction(lambda: execute_due(self.repository, today))

    # Preferences

    def get_preferences(self) -> Preferences:
        return self.repository.get_preferences() or Preferences()

    def update_preferences(self, **changes: Any) -> Preferences:
        def action() -> Preferences:
            current = self.repository.get_preferences() or Preferences()
            return self.repository.save_preferences(replace(current, **changes))

        return self._run_transaction(action)

    # Adjustments and forecasts

    def set_adjustment(
        self,
        account_id: int,
        year_month: str,
        adjusted_balance: Decimal | str | int | float,
        note: str | None = None,
    ) -> BalanceAdjustment | None:
        """Override an account's closing balance for a month."""
        self.repository.get_account(account_id)
        return self.ledger.set(account_id, year_month, adjusted_balance, note)

    def get_adjustment(self, account_id: int, year_month: str) -> BalanceAdjustment | None:
        return self.ledger.get(account_id, year_month)

    def list_adjustments(self, account_id: int) -> list[BalanceAdjustment]:
        return self.ledger.get_all_for_account(account_id)

    def delete_adjustment(self, account_id: int, year_month: str) -> bool:
        return self.ledger.delete(account_id, year_month)

    def forecast_month(self, scope: int | str, year_month: str) -> Forecast:
        return self.forecaster.forecast_month(scope, year_month)

    def monthly_balances(
        self, scope: int | str, start_year_month: str, months: int
    ) -> list[MonthlyBalance]:
        return self.forecaster.monthly_balances(scope, start_year_month, months)

    def balance_at(self, scope: int | str, on_date: dt.date) -> Decimal:
        return self.forecaster.balance_at(scope, on_date)

    # Maintenance

    def clean_orphans(self) -> dict[str, int]:
        """Remove rows that reference deleted accounts."""
        return self.repository.delete_orphans()

    def clean_old_transactions(self, months: int = 24, today: dt.date | None = None) -> int:
        """Delete transactions older than the given number of months."""
        if months < 1:
            raise ValueError("months must be at least 1")
        today = today or dt.date.today()
        cutoff = today - relativedelta(months=months)
        removed = self._run_transaction(lambda: self.repository.delete_transactions_before(cutoff))
        logger.info("Removed %d transactions dated before %s", removed, cutoff.isoformat())
        return removed

    def repair_schema(self) -> list[str]:
        return self.repository.repair_schema()

    def rebuild_database(self) -> None:
        self.repository.rebuild()

    # Export and import

    def export_data(self, account_id: int | None = None) -> dict[str, Any]:
        """Return a JSON-compatible export of all data, or of one account."""
        snapshot = self.repository.read_snapshot()
        if account_id is not None:
            snapshot = self._account_snapshot(snapshot, account_id)
        payload = encode_snapshot(snapshot)
        payload["exportVersion"] = EXPORT_FORMAT_VERSION
        payload["exportedAt"] = utc_now().isoformat()
        payload["appVersion"] = __version__
        return payload

    def export_to_file(self, path: str | Path, account_id: int | None = None) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as handle:
            json.dump(self.export_data(account_id), handle, indent=2)
        return target

    def import_data(self, payload: dict[str, Any], mode: str = "merge") -> Snapshot:
        """Load an export into the local store.

        ``replace`` swaps in the exported kinds verbatim; ``merge`` reconciles
        them with local data the same way a sync pass does.
        """
        if mode not in IMPORT_MODES:
            raise ValueError(f"mode must be one of: {', '.join(sorted(IMPORT_MODES))}")
        snapshot = decode_snapshot(payload)
        if snapshot.accounts is None:
            raise ValueError("Import payload has no accounts")

        def action() -> Snapshot:
            if mode == "replace":
                self.repository.replace_all(snapshot)
            else:
                apply_merge(self.repository, self.repository.read_snapshot(), snapshot)
            return self.repository.read_snapshot()

        result = self._run_transaction(action)
        logger.info("Imported %d accounts (%s)", len(snapshot.accounts), mode)
        return result

    def import_from_file(self, path: str | Path, mode: str = "merge") -> Snapshot:
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return self.import_data(payload, mode=mode)

    @staticmethod
    def _account_snapshot(snapshot: Snapshot, account_id: int) -> Snapshot:
        accounts = [account for account in snapshot.accounts if account.id == account_id]
        if not accounts:
            raise NotFoundError(f"Account {account_id} not found")

        def touches(entity: Any) -> bool:
            return account_id in (entity.account_id, getattr(entity, "to_account_id", None))

        return Snapshot(
            accounts=accounts,
            transactions=[item for item in snapshot.transactions if touches(item)],
            recurring_transactions=[
                item for item in snapshot.recurring_transactions if touches(item)
            ],
            balance_adjustments=(
                [item for item in snapshot.balance_adjustments if touches(item)]
                if snapshot.balance_adjustments is not None
                else None
            ),
        )

    # Synchronization

    @property
    def sync_state_store(self) -> SyncStateStore:
        return SyncStateStore(self.db_path.with_suffix(SYNC_STATE_SUFFIX))

    def sync_state(self) -> SyncState:
        return self.sync_state_store.load()

    def mark_force_local(self) -> SyncState:
        return self.sync_state_store.mark_force_local()

    def mark_needs_server_data(self) -> SyncState:
        return self.sync_state_store.mark_needs_server_data()

    def sync(
        self,
        force_server_data: bool = False,
        initial_sync: bool = False,
        on_progress: Callable[[int], None] | None = None,
    ) -> SyncResult:
        """Run one synchronization pass and persist the resulting state."""
        orchestrator = self._get_orchestrator()
        orchestrator.on_progress = on_progress
        store = self.sync_state_store
        result = orchestrator.synchronize(
            store.load(), force_server_data=force_server_data, initial_sync=initial_sync
        )
        if result.ok:
            store.save(result.state)
        return result

    def _get_orchestrator(self) -> SyncOrchestrator:
        if self.remote is None:
            raise ValueError("No remote store configured")
        if not self.username:
            raise ValueError("username is required to synchronize")
        if self._orchestrator is None:
            self._orchestrator = SyncOrchestrator(
                self.repository,
                self.remote,
                Credentials(self.username, self.password or ""),
                settings=self.sync_settings,
                session=self.sync_session,
            )
        return self._orchestrator
