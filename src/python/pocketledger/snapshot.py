"""Encode and decode snapshots to the JSON wire payload."""

from __future__ import annotations

from decimal import InvalidOperation
import logging
from typing import Any, Callable

from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Expense,
    Preferences,
    RecurringTransaction,
    Snapshot,
    Transaction,
    Transfer,
    format_timestamp,
    make_transaction,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

DECODE_ERRORS = (ValueError, TypeError, KeyError, AttributeError, InvalidOperation)


def _stamp(value: Any) -> str | None:
    return format_timestamp(value) if value is not None else None


def _day(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def encode_account(account: Account) -> dict[str, Any]:
    return {
        "id": account.id,
        "name": account.name,
        "type": account.type.value,
        "initialBalance": str(account.initial_balance),
        "currency": account.currency,
        "icon": account.icon,
        "color": account.color,
        "isArchived": account.is_archived,
        "createdAt": _stamp(account.created_at),
        "updatedAt": _stamp(account.updated_at),
    }


def encode_transaction(transaction: Transaction) -> dict[str, Any]:
    payload = {
        "id": transaction.id,
        "type": transaction.type.value,
        "accountId": transaction.account_id,
        "amount": str(transaction.amount),
        "description": transaction.description,
        "date": transaction.date.isoformat(),
        "recurringId": transaction.recurring_id,
        "createdAt": _stamp(transaction.created_at),
        "updatedAt": _stamp(transaction.updated_at),
    }
    if isinstance(transaction, Transfer):
        payload["toAccountId"] = transaction.to_account_id
    if isinstance(transaction, Expense):
        payload["category"] = transaction.category.value if transaction.category else None
    return payload


def encode_recurring(recurring: RecurringTransaction) -> dict[str, Any]:
    return {
        "id": recurring.id,
        "type": recurring.type.value,
        "accountId": recurring.account_id,
        "toAccountId": recurring.to_account_id,
        "amount": str(recurring.amount),
        "category": recurring.category.value if recurring.category else None,
        "description": recurring.description,
        "frequency": recurring.frequency.value,
        "startDate": recurring.start_date.isoformat(),
        "endDate": _day(recurring.end_date),
        "nextExecution": recurring.next_execution.isoformat(),
        "lastExecuted": _day(recurring.last_executed),
        "isDisabled": recurring.disabled,
        "createdAt": _stamp(recurring.created_at),
        "updatedAt": _stamp(recurring.updated_at),
    }


def encode_preferences(preferences: Preferences) -> dict[str, Any]:
    return {
        "id": preferences.id,
        "defaultCurrency": preferences.default_currency,
        "theme": preferences.theme.value,
        "dateFormat": preferences.date_format,
        "defaultAccount": preferences.default_account_id,
        "createdAt": _stamp(preferences.created_at),
        "updatedAt": _stamp(preferences.updated_at),
    }


def encode_adjustment(adjustment: BalanceAdjustment) -> dict[str, Any]:
    return {
        "id": adjustment.id,
        "accountId": adjustment.account_id,
        "yearMonth": adjustment.year_month,
        "adjustedBalance": str(adjustment.adjusted_balance),
        "note": adjustment.note,
        "createdAt": _stamp(adjustment.created_at),
        "updatedAt": _stamp(adjustment.updated_at),
    }


def encode_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    """Render a snapshot as a JSON-compatible payload.

    Kinds that are ``None`` on the snapshot are omitted.
    """
    payload: dict[str, Any] = {}
    if snapshot.accounts is not None:
        payload["accounts"] = [encode_account(item) for item in snapshot.accounts]
    if snapshot.transactions is not None:
        payload["transactions"] = [encode_transaction(item) for item in snapshot.transactions]
    if snapshot.recurring_transactions is not None:
        payload["recurringTransactions"] = [
            encode_recurring(item) for item in snapshot.recurring_transactions
        ]
    if snapshot.preferences is not None:
        payload["preferences"] = encode_preferences(snapshot.preferences)
    if snapshot.balance_adjustments is not None:
        payload["balanceAdjustments"] = [
            encode_adjustment(item) for item in snapshot.balance_adjustments
        ]
    payload["lastSyncTime"] = _stamp(snapshot.last_sync_time)
    payload["syncId"] = snapshot.sync_id
    payload["deviceId"] = snapshot.device_id
    return payload


def decode_account(row: dict[str, Any]) -> Account:
    return Account(
        id=row.get("id"),
        name=row["name"],
        type=row.get("type") or "checking",
        initial_balance=row.get("initialBalance", 0),
        currency=row.get("currency") or "EUR",
        icon=row.get("icon"),
        color=row.get("color"),
        is_archived=bool(row.get("isArchived", False)),
        created_at=row.get("createdAt"),
        updated_at=row.get("updatedAt"),
    )


def decode_transaction(row: dict[str, Any]) -> Transaction:
    return make_transaction(
        row["type"],
        id=row.get("id"),
        account_id=row["accountId"],
        to_account_id=row.get("toAccountId") if row["type"] == "transfer" else None,
        amount=row["amount"],
        category=row.get("category") if row["type"] == "expense" else None,
        description=row.get("description") or "",
        date=row["date"],
        recurring_id=row.get("recurringId"),
        created_at=row.get("createdAt"),
        updated_at=row.get("updatedAt"),
    )


def decode_recurring(row: dict[str, Any]) -> RecurringTransaction:
    return RecurringTransaction(
        id=row.get("id"),
        type=row["type"],
        account_id=row["accountId"],
        to_account_id=row.get("toAccountId") if row["type"] == "transfer" else None,
        amount=row["amount"],
        category=row.get("category") if row["type"] == "expense" else None,
        description=row.get("description") or "",
        frequency=row["frequency"],
        start_date=row["startDate"],
        end_date=row.get("endDate"),
        next_execution=row.get("nextExecution"),
        last_executed=row.get("lastExecuted"),
        disabled=bool(row.get("isDisabled", False)),
        created_at=row.get("createdAt"),
        updated_at=row.get("updatedAt"),
    )


def decode_preferences(row: dict[str, Any]) -> Preferences:
    return Preferences(
        id=row.get("id"),
        default_currency=row.get("defaultCurrency") or "EUR",
        theme=row.get("theme") or "light",
        date_format=row.get("dateFormat") or "dd/MM/yyyy",
        default_account_id=row.get("defaultAccount"),
        created_at=row.get("createdAt"),
        updated_at=row.get("updatedAt"),
    )


def decode_adjustment(row: dict[str, Any]) -> BalanceAdjustment:
    return BalanceAdjustment(
        id=row.get("id"),
        account_id=row["accountId"],
        year_month=row["yearMonth"],
        adjusted_balance=row["adjustedBalance"],
        note=row.get("note"),
        created_at=row.get("createdAt"),
        updated_at=row.get("updatedAt"),
    )


def _decode_rows(
    payload: dict[str, Any], key: str, decoder: Callable[[dict[str, Any]], Any]
) -> list[Any] | None:
    rows = payload.get(key)
    if rows is None:
        return None
    if not isinstance(rows, list):
        logger.warning("Ignoring %s: expected a list, got %s", key, type(rows).__name__)
        return None
    decoded = []
    for index, row in enumerate(rows):
        try:
            decoded.append(decoder(row))
        except DECODE_ERRORS as exc:
            logger.warning("Dropping malformed %s row %d: %s", key, index, exc)
    return decoded


def decode_snapshot(payload: dict[str, Any]) -> Snapshot:
    """Build a snapshot from a wire payload.

    Missing or malformed kinds decode to ``None``; malformed rows are dropped.
    """
    if not isinstance(payload, dict):
        raise ValueError("Snapshot payload must be an object")
    preferences = None
    raw_preferences = payload.get("preferences")
    if isinstance(raw_preferences, dict):
        try:
            preferences = decode_preferences(raw_preferences)
        except DECODE_ERRORS as exc:
            logger.warning("Dropping malformed preferences: %s", exc)
    last_sync_time = None
    try:
        last_sync_time = parse_timestamp(payload.get("lastSyncTime"))
    except ValueError as exc:
        logger.warning("Ignoring malformed lastSyncTime: %s", exc)
    return Snapshot(
        accounts=_decode_rows(payload, "accounts", decode_account),
        transactions=_decode_rows(payload, "transactions", decode_transaction),
        recurring_transactions=_decode_rows(payload, "recurringTransactions", decode_recurring),
        preferences=preferences,
        balance_adjustments=_decode_rows(payload, "balanceAdjustments", decode_adjustment),
        last_sync_time=last_sync_time,
        sync_id=payload.get("syncId"),
        device_id=payload.get("deviceId"),
    )
