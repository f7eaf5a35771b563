"""Database schema constants and migrations."""

from __future__ import annotations

SCHEMA_VERSION = 3

ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"
RECURRING_TRANSACTIONS = "recurringTransactions"
USER_PREFERENCES = "userPreferences"
BALANCE_ADJUSTMENTS = "balanceAdjustments"

ENTITY_TABLES = [
    ACCOUNTS,
    TRANSACTIONS,
    RECURRING_TRANSACTIONS,
    USER_PREFERENCES,
    BALANCE_ADJUSTMENTS,
]
OPTIONAL_TABLES = {BALANCE_ADJUSTMENTS}

DEFAULT_CURRENCY = "EUR"
DEFAULT_THEME = "light"
DEFAULT_DATE_FORMAT = "dd/MM/yyyy"

ACCOUNT_COLUMNS = [
    "id",
    "name",
    "type",
    "initialBalance",
    "currency",
    "icon",
    "color",
    "isArchived",
    "createdAt",
    "updatedAt",
]

TRANSACTION_COLUMNS = [
    "id",
    "accountId",
    "toAccountId",
    "amount",
    "type",
    "category",
    "description",
    "date",
    "recurringId",
    "createdAt",
    "updatedAt",
]

RECURRING_COLUMNS = [
    "id",
    "accountId",
    "toAccountId",
    "amount",
    "type",
    "category",
    "description",
    "frequency",
    "startDate",
    "endDate",
    "nextExecution",
    "lastExecuted",
    "isDisabled",
    "createdAt",
    "updatedAt",
]

PREFERENCES_COLUMNS = [
    "id",
    "defaultCurrency",
    "theme",
    "dateFormat",
    "defaultAccount",
    "createdAt",
    "updatedAt",
]

ADJUSTMENT_COLUMNS = [
    "id",
    "accountId",
    "yearMonth",
    "adjustedBalance",
    "note",
    "createdAt",
    "updatedAt",
]

TABLE_DDL = {
    ACCOUNTS: """
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            type TEXT NOT NULL,
            initialBalance TEXT NOT NULL,
            currency TEXT NOT NULL,
            icon TEXT,
            color TEXT,
            isArchived INTEGER NOT NULL DEFAULT 0,
            createdAt TEXT NOT NULL,
            updatedAt TEXT NOT NULL
        )
    """,
    TRANSACTIONS: """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            accountId INTEGER NOT NULL,
            toAccountId INTEGER,
            amount TEXT NOT NULL,
            type TEXT NOT NULL,
            category TEXT,
            description TEXT NOT NULL DEFAULT '',
            date TEXT NOT NULL,
            recurringId INTEGER,
            createdAt TEXT NOT NULL,
            updatedAt TEXT NOT NULL
        )
    """,
    RECURRING_TRANSACTIONS: """
        CREATE TABLE IF NOT EXISTS recurringTransactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            accountId INTEGER NOT NULL,
            toAccountId INTEGER,
            amount TEXT NOT NULL,
            type TEXT NOT NULL,
            category TEXT,
            description TEXT NOT NULL DEFAULT '',
            frequency TEXT NOT NULL,
            startDate TEXT NOT NULL,
            endDate TEXT,
            nextExecution TEXT NOT NULL,
            lastExecuted TEXT,
            isDisabled INTEGER NOT NULL DEFAULT 0,
            createdAt TEXT NOT NULL,
            updatedAt TEXT NOT NULL
        )
    """,
    USER_PREFERENCES: """
        CREATE TABLE IF NOT EXISTS userPreferences (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            defaultCurrency TEXT NOT NULL,
            theme TEXT NOT NULL,
            dateFormat TEXT NOT NULL,
            defaultAccount INTEGER,
            createdAt TEXT NOT NULL,
            updatedAt TEXT NOT NULL
        )
    """,
    BALANCE_ADJUSTMENTS: """
        CREATE TABLE IF NOT EXISTS balanceAdjustments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            accountId INTEGER NOT NULL,
            yearMonth TEXT NOT NULL,
            adjustedBalance TEXT NOT NULL,
            note TEXT,
            createdAt TEXT NOT NULL,
            updatedAt TEXT NOT NULL
        )
    """,
}

INDEX_DDL = {
    ACCOUNTS: [
        "CREATE INDEX IF NOT EXISTS accounts_by_name ON accounts (name COLLATE NOCASE)",
        "CREATE INDEX IF NOT EXISTS accounts_by_type ON accounts (type)",
    ],
    TRANSACTIONS: [
        "CREATE INDEX IF NOT EXISTS transactions_by_account ON transactions (accountId)",
        "CREATE INDEX IF NOT EXISTS transactions_by_date ON transactions (date)",
        "CREATE INDEX IF NOT EXISTS transactions_by_type ON transactions (type)",
        "CREATE INDEX IF NOT EXISTS transactions_by_account_date ON transactions (accountId, date)",
    ],
    RECURRING_TRANSACTIONS: [
        "CREATE INDEX IF NOT EXISTS recurring_by_account ON recurringTransactions (accountId)",
        "CREATE INDEX IF NOT EXISTS recurring_by_next_execution "
        "ON recurringTransactions (nextExecution)",
    ],
    USER_PREFERENCES: [],
    BALANCE_ADJUSTMENTS: [
        "CREATE UNIQUE INDEX IF NOT EXISTS adjustments_by_account_month "
        "ON balanceAdjustments (accountId, yearMonth)",
    ],
}

# Tables introduced by each schema version. Upgrades only ever add.
MIGRATIONS = {
    1: [ACCOUNTS, TRANSACTIONS, RECURRING_TRANSACTIONS, USER_PREFERENCES],
    2: [BALANCE_ADJUSTMENTS],
    3: [],
}
