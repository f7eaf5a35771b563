"""Domain models for accounts, transactions, schedules and sync state."""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
from decimal import Decimal
from enum import Enum
import re
import time
from typing import Any, ClassVar, Union
import uuid

from pocketledger.schema import DEFAULT_CURRENCY, DEFAULT_DATE_FORMAT


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "creditCard"
    CASH = "cash"
    INVESTMENT = "investment"
    OTHER = "other"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class ExpenseCategory(str, Enum):
    FIXED = "fixed"
    RECURRING = "recurring"
    EXCEPTIONAL = "exceptional"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    CYBER = "cyber"
    SOFTBANK = "softbank"


CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
YEAR_MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def utc_now() -> dt.datetime:
    """Return the current time as an aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


def parse_timestamp(value: dt.datetime | str | None) -> dt.datetime | None:
    """Normalize an ISO-8601 string or datetime to an aware UTC datetime.

    Naive values are taken as UTC. A trailing ``Z`` is accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        stamp = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            stamp = dt.datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=dt.timezone.utc)
    return stamp.astimezone(dt.timezone.utc)


def format_timestamp(value: dt.datetime) -> str:
    """Render a timestamp in the storage and wire format."""
    stamp = parse_timestamp(value)
    return stamp.isoformat(timespec="microseconds")


def parse_date(value: dt.date | dt.datetime | str) -> dt.date:
    """Normalize a date, datetime or ISO string to a date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return parse_timestamp(text).date()
        try:
            return dt.date.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid date: {value!r}") from exc
    raise ValueError("Date must be a datetime.date")


def normalize_account_name(name: str) -> str:
    """Strip the name and upper-case its first character."""
    text = _ensure_non_empty(name, "Account name")
    return text[0].upper() + text[1:]


def account_name_key(name: str) -> str:
    """Case-insensitive comparison key for account names."""
    return name.strip().casefold()


def parse_year_month(value: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` string into (year, month)."""
    match = YEAR_MONTH_PATTERN.match(value or "")
    if match is None:
        raise ValueError(f"Invalid year-month: {value!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def year_month_of(day: dt.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def shift_year_month(value: str, months: int) -> str:
    """Move a ``YYYY-MM`` value by a number of months."""
    year, month = parse_year_month(value)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_bounds(value: str) -> tuple[dt.date, dt.date]:
    """Return the first and last day of a ``YYYY-MM`` month."""
    year, month = parse_year_month(value)
    first = dt.date(year, month, 1)
    next_year, next_month = parse_year_month(shift_year_month(value, 1))
    last = dt.date(next_year, next_month, 1) - dt.timedelta(days=1)
    return first, last


def generate_sync_id() -> str:
    """Return a new snapshot generation identifier."""
    return f"sync_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


def generate_device_id() -> str:
    """Return a new installation identifier."""
    return f"device_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


def _ensure_non_empty(value: str, field_name: str) -> str:
    """Validate required text fields."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def _to_decimal(value: Decimal | str | int | float, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a decimal")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except Exception as exc:
        raise ValueError(f"{field_name} must be a decimal") from exc
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be a finite decimal")
    return amount


def _ensure_decimal(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse and validate positive decimal values."""
    amount = _to_decimal(value, field_name)
    if amount <= Decimal("0"):
        raise ValueError(f"{field_name} must be greater than zero")
    return amount


def _ensure_enum(enum_type: type, value: Any, field_name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"{field_name} must be one of: {allowed}") from exc


def _ensure_currency(value: str) -> str:
    code = _ensure_non_empty(value, "Currency").upper()
    if not CURRENCY_PATTERN.match(code):
        raise ValueError(f"Currency must be a 3-letter code, got {value!r}")
    return code


def _ensure_optional_id(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer") from exc


def _validate_audit_fields(entity: Any) -> None:
    object.__setattr__(entity, "id", _ensure_optional_id(entity.id, "id"))
    object.__setattr__(entity, "created_at", parse_timestamp(entity.created_at))
    object.__setattr__(entity, "updated_at", parse_timestamp(entity.updated_at))


@dataclass(frozen=True)
class Account:
    """A ledger account holding an opening balance."""
    name: str
    type: AccountType = AccountType.CHECKING
    initial_balance: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    is_archived: bool = False
    icon: str | None = None
    color: str | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", normalize_account_name(self.name))
        object.__setattr__(self, "type", _ensure_enum(AccountType, self.type, "Account type"))
        object.__setattr__(
            self, "initial_balance", _to_decimal(self.initial_balance, "Initial balance")
        )
        object.__setattr__(self, "currency", _ensure_currency(self.currency))
        object.__setattr__(self, "is_archived", bool(self.is_archived))
        _validate_audit_fields(self)


class BaseTransaction:
    """Shared validation behavior for transaction variants."""

    type: ClassVar[TransactionType]
    account_id: int
    amount: Decimal
    date: dt.date
    description: str
    recurring_id: int | None
    id: int | None
    created_at: dt.datetime | None
    updated_at: dt.datetime | None

    def _validate_base_fields(self) -> None:
        account_id = _ensure_optional_id(self.account_id, "account_id")
        if account_id is None:
            raise ValueError("account_id is required")
        object.__setattr__(self, "account_id", account_id)
        object.__setattr__(self, "amount", _ensure_decimal(self.amount, "Amount"))
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "description", (self.description or "").strip())
        object.__setattr__(
            self, "recurring_id", _ensure_optional_id(self.recurring_id, "recurring_id")
        )
        _validate_audit_fields(self)


@dataclass(frozen=True)
class Income(BaseTransaction):
    """Money entering an account."""
    type: ClassVar[TransactionType] = TransactionType.INCOME
    account_id: int
    amount: Decimal
    date: dt.date
    description: str = ""
    recurring_id: int | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        self._validate_base_fields()


@dataclass(frozen=True)
class Expense(BaseTransaction):
    """Money leaving an account."""
    type: ClassVar[TransactionType] = TransactionType.EXPENSE
    account_id: int
    amount: Decimal
    date: dt.date
    description: str = ""
    category: ExpenseCategory | None = None
    recurring_id: int | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        if self.category is not None:
            object.__setattr__(
                self, "category", _ensure_enum(ExpenseCategory, self.category, "Category")
            )
        self._validate_base_fields()


@dataclass(frozen=True)
class Transfer(BaseTransaction):
    """Money moved from one account to another."""
    type: ClassVar[TransactionType] = TransactionType.TRANSFER
    account_id: int
    to_account_id: int
    amount: Decimal
    date: dt.date
    description: str = ""
    recurring_id: int | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        self._validate_base_fields()
        to_account_id = _ensure_optional_id(self.to_account_id, "to_account_id")
        if to_account_id is None:
            raise ValueError("to_account_id is required for transfers")
        if to_account_id == self.account_id:
            raise ValueError("Source and destination accounts must differ")
        object.__setattr__(self, "to_account_id", to_account_id)


Transaction = Union[Income, Expense, Transfer]

TRANSACTION_CLASSES: dict[TransactionType, type] = {
    TransactionType.INCOME: Income,
    TransactionType.EXPENSE: Expense,
    TransactionType.TRANSFER: Transfer,
}


def make_transaction(
    type: TransactionType | str,
    account_id: int,
    amount: Decimal | str | int | float,
    date: dt.date | str,
    description: str = "",
    to_account_id: int | None = None,
    category: ExpenseCategory | str | None = None,
    recurring_id: int | None = None,
    id: int | None = None,
    created_at: dt.datetime | str | None = None,
    updated_at: dt.datetime | str | None = None,
) -> Transaction:
    """Build the transaction variant matching ``type``.

    Fields that do not belong to the variant must be empty.
    """
    kind = _ensure_enum(TransactionType, type, "Transaction type")
    common = dict(
        account_id=account_id,
        amount=amount,
        date=date,
        description=description,
        recurring_id=recurring_id,
        id=id,
        created_at=created_at,
        updated_at=updated_at,
    )
    if kind is TransactionType.TRANSFER:
        if category is not None:
            raise ValueError("Category is only valid for expenses")
        return Transfer(to_account_id=to_account_id, **common)
    if to_account_id is not None:
        raise ValueError("to_account_id is only valid for transfers")
    if kind is TransactionType.EXPENSE:
        return Expense(category=category, **common)
    if category is not None:
        raise ValueError("Category is only valid for expenses")
    return Income(**common)


@dataclass(frozen=True)
class RecurringTransaction:
    """Schedule template that materializes into transactions."""
    type: TransactionType
    account_id: int
    amount: Decimal
    frequency: Frequency
    start_date: dt.date
    description: str = ""
    to_account_id: int | None = None
    category: ExpenseCategory | None = None
    end_date: dt.date | None = None
    next_execution: dt.date | None = None
    last_executed: dt.date | None = None
    disabled: bool = False
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "type", _ensure_enum(TransactionType, self.type, "Transaction type")
        )
        object.__setattr__(
            self, "frequency", _ensure_enum(Frequency, self.frequency, "Frequency")
        )
        # Building the template transaction runs the variant's own validation.
        self.materialize(self.start_date)
        object.__setattr__(self, "account_id", int(self.account_id))
        object.__setattr__(self, "amount", _ensure_decimal(self.amount, "Amount"))
        object.__setattr__(self, "description", (self.description or "").strip())
        if self.to_account_id is not None:
            object.__setattr__(self, "to_account_id", int(self.to_account_id))
        if self.category is not None:
            object.__setattr__(
                self, "category", _ensure_enum(ExpenseCategory, self.category, "Category")
            )
        object.__setattr__(self, "start_date", parse_date(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", parse_date(self.end_date))
            if self.end_date < self.start_date:
                raise ValueError("end_date must not precede start_date")
        if self.next_execution is None:
            object.__setattr__(self, "next_execution", self.start_date)
        else:
            object.__setattr__(self, "next_execution", parse_date(self.next_execution))
        if self.last_executed is not None:
            object.__setattr__(self, "last_executed", parse_date(self.last_executed))
        object.__setattr__(self, "disabled", bool(self.disabled))
        _validate_audit_fields(self)

    def materialize(self, on: dt.date) -> Transaction:
        """Return the transaction this schedule produces on the given date."""
        return make_transaction(
            self.type,
            account_id=self.account_id,
            amount=self.amount,
            date=on,
            description=self.description,
            to_account_id=self.to_account_id,
            category=self.category,
            recurring_id=self.id,
        )

    def is_active_on(self, day: dt.date) -> bool:
        """Whether an occurrence on ``day`` falls inside the schedule window."""
        if self.disabled or day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date


@dataclass(frozen=True)
class BalanceAdjustment:
    """Manual override of an account's closing balance for one month."""
    account_id: int
    year_month: str
    adjusted_balance: Decimal
    note: str | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        account_id = _ensure_optional_id(self.account_id, "account_id")
        if account_id is None:
            raise ValueError("account_id is required")
        object.__setattr__(self, "account_id", account_id)
        parse_year_month(self.year_month)
        object.__setattr__(
            self, "adjusted_balance", _to_decimal(self.adjusted_balance, "Adjusted balance")
        )
        _validate_audit_fields(self)


@dataclass(frozen=True)
class Preferences:
    """Per-user display preferences (singleton row)."""
    default_currency: str = DEFAULT_CURRENCY
    theme: Theme = Theme.LIGHT
    date_format: str = DEFAULT_DATE_FORMAT
    default_account_id: int | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_currency", _ensure_currency(self.default_currency))
        object.__setattr__(self, "theme", _ensure_enum(Theme, self.theme, "Theme"))
        object.__setattr__(
            self, "date_format", _ensure_non_empty(self.date_format, "Date format")
        )
        object.__setattr__(
            self,
            "default_account_id",
            _ensure_optional_id(self.default_account_id, "default_account_id"),
        )
        _validate_audit_fields(self)


@dataclass(frozen=True)
class SyncState:
    """Device-local bookkeeping for synchronization passes.

    ``force_local_data`` and ``needs_server_data`` are one-shot flags: the pass
    that honours them returns a state with the flag cleared.
    """
    device_id: str = field(default_factory=generate_device_id)
    sync_id: str | None = None
    last_sync_time: dt.datetime | None = None
    force_local_data: bool = False
    needs_server_data: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "device_id", _ensure_non_empty(self.device_id, "device_id"))
        object.__setattr__(self, "last_sync_time", parse_timestamp(self.last_sync_time))


@dataclass(frozen=True)
class Page:
    """One page of a paginated query."""
    items: list[Any]
    total: int


@dataclass(frozen=True)
class Forecast:
    """Projected figures for one month."""
    opening_balance: Decimal
    income: Decimal
    expense: Decimal
    closing_balance: Decimal
    is_adjusted: bool = False

    @classmethod
    def zero(cls) -> Forecast:
        return cls(Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0"), False)


@dataclass(frozen=True)
class MonthlyBalance:
    """A row of a multi-month forecast table."""
    year_month: str
    opening_balance: Decimal
    income: Decimal
    expense: Decimal
    closing_balance: Decimal
    is_adjusted: bool = False


@dataclass(frozen=True)
class Snapshot:
    """Complete copy of one user's data, local or remote.

    On a remote snapshot any kind may be ``None`` when the payload lacked it.
    """
    accounts: list[Account] | None = None
    transactions: list[Transaction] | None = None
    recurring_transactions: list[RecurringTransaction] | None = None
    preferences: Preferences | None = None
    balance_adjustments: list[BalanceAdjustment] | None = None
    last_sync_time: dt.datetime | None = None
    sync_id: str | None = None
    device_id: str | None = None

    @property
    def has_accounts(self) -> bool:
        return bool(self.accounts)
