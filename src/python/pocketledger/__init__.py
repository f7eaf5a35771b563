"""Public pocketledger package exports."""

from __future__ import annotations

from pocketledger.__version__ import __version__
from pocketledger.client import LedgerClient
from pocketledger.exceptions import (
    DuplicateError,
    NotFoundError,
    PocketLedgerError,
    RemoteUnreachable,
    SchemaIncomplete,
    StorageUnavailable,
)
from pocketledger.forecast import ALL_ACCOUNTS, ForecastCalculator
from pocketledger.ledger import AdjustmentLedger
from pocketledger.models import (
    Account,
    AccountType,
    BalanceAdjustment,
    Expense,
    ExpenseCategory,
    Forecast,
    Frequency,
    Income,
    MonthlyBalance,
    Preferences,
    RecurringTransaction,
    Snapshot,
    SyncState,
    Transfer,
)
from pocketledger.persistence import PersistenceBackend
from pocketledger.remote import Credentials, FileRemoteStore, HttpRemoteStore, RemoteStore
from pocketledger.repository import Repository
from pocketledger.sync import SyncOrchestrator, SyncResult, SyncStatus

__all__ = [
    "__version__",
    "LedgerClient",
    "DuplicateError",
    "NotFoundError",
    "PocketLedgerError",
    "RemoteUnreachable",
    "SchemaIncomplete",
    "StorageUnavailable",
    "ALL_ACCOUNTS",
    "ForecastCalculator",
    "AdjustmentLedger",
    "Account",
    "AccountType",
    "BalanceAdjustment",
    "Expense",
    "ExpenseCategory",
    "Forecast",
    "Frequency",
    "Income",
    "MonthlyBalance",
    "Preferences",
    "RecurringTransaction",
    "Snapshot",
    "SyncState",
    "Transfer",
    "PersistenceBackend",
    "Credentials",
    "FileRemoteStore",
    "HttpRemoteStore",
    "RemoteStore",
    "Repository",
    "SyncOrchestrator",
    "SyncResult",
    "SyncStatus",
]
