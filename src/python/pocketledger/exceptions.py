"""Custom exception types for pocketledger."""

from __future__ import annotations

from typing import Any


class PocketLedgerError(Exception):
    """Base class for pocketledger errors."""


class DuplicateError(PocketLedgerError):
    """Raised when a duplicate record is detected."""

    def __init__(self, message: str, details: dict[str, Any]) -> None:
        super().__init__(message)
        self.details = details


class NotFoundError(PocketLedgerError):
    """Raised when a requested record does not exist."""


class StorageUnavailable(PocketLedgerError):
    """Raised when the local database cannot be opened or upgraded."""


class SchemaIncomplete(PocketLedgerError):
    """Raised when a write targets a table missing from the local schema."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table {table!r} is not available in the local schema")
        self.table = table


class RemoteUnreachable(PocketLedgerError):
    """Raised when the remote snapshot store cannot be reached."""
