from __future__ import annotations

from pocketledger.exceptions import (
    DuplicateError,
    PocketLedgerError,
    RemoteUnreachable,
    SchemaIncomplete,
)


def test_duplicate_error_details() -> None:
    details = {"name": "Savings", "existing_id": 2}
    error = DuplicateError("Duplicate account name", details)

    assert error.details == details
    assert "Duplicate account name" in str(error)
    assert isinstance(error, PocketLedgerError)


def test_schema_incomplete_names_table() -> None:
    error = SchemaIncomplete("balanceAdjustments")

    assert error.table == "balanceAdjustments"
    assert "balanceAdjustments" in str(error)


def test_remote_unreachable_is_ledger_error() -> None:
    assert issubclass(RemoteUnreachable, PocketLedgerError)
