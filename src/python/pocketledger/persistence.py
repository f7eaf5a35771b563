"""Persistence interfaces for pocketledger storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Preferences,
    RecurringTransaction,
    Snapshot,
    Transaction,
)


class PersistenceBackend(ABC):
    """Abstract interface for repository backends.

    Backends own every stored row. Writers outside a backend go through these
    methods or through the typed CRUD the concrete store adds.
    """

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the backend with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Establish a backend connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a transaction."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the active transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the active transaction."""

    # Schema

    @abstractmethod
    def inspect_schema_version(self) -> int:
        """Return the schema version recorded in storage."""

    @abstractmethod
    def initialize(self) -> int:
        """Create or upgrade the schema and return the active version."""

    @abstractmethod
    def is_available(self, table: str) -> bool:
        """Report whether a table exists in the local schema."""

    @abstractmethod
    def repair_schema(self) -> list[str]:
        """Recreate missing tables and return their names."""

    @abstractmethod
    def delete_orphans(self) -> dict[str, int]:
        """Remove rows pointing at accounts that no longer exist."""

    # Reads

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """Return accounts ordered by name."""

    @abstractmethod
    def list_transactions(self, account_id: int | None = None) -> list[Transaction]:
        """Return transactions touching an account, or all of them."""

    @abstractmethod
    def list_recurring(self, account_id: int | None = None) -> list[RecurringTransaction]:
        """Return recurring schedules touching an account, or all of them."""

    @abstractmethod
    def list_adjustments(self, account_id: int | None = None) -> list[BalanceAdjustment]:
        """Return balance adjustments for an account, or all of them."""

    @abstractmethod
    def get_preferences(self) -> Preferences | None:
        """Return the preferences row."""

    # Snapshots

    @abstractmethod
    def read_snapshot(self) -> Snapshot:
        """Return every entity kind as one snapshot."""

    @abstractmethod
    def replace_all(self, snapshot: Snapshot) -> None:
        """Replace local entity tables with the snapshot contents."""
