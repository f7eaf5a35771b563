from __future__ import annotations

from pocketledger import schema


def test_transaction_table_fields() -> None:
    expected = [
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

    assert schema.TRANSACTION_COLUMNS == expected


def test_every_entity_table_has_ddl_and_indexes() -> None:
    for table in schema.ENTITY_TABLES:
        assert table in schema.TABLE_DDL
        assert table in schema.INDEX_DDL


def test_migrations_cover_every_table_once() -> None:
    introduced = [table for tables in schema.MIGRATIONS.values() for table in tables]

    assert sorted(introduced) == sorted(schema.ENTITY_TABLES)
    assert max(schema.MIGRATIONS) == schema.SCHEMA_VERSION


def test_adjustments_are_unique_per_account_month() -> None:
    statements = schema.INDEX_DDL[schema.BALANCE_ADJUSTMENTS]

    assert any("UNIQUE" in statement and "yearMonth" in statement for statement in statements)
    assert schema.BALANCE_ADJUSTMENTS in schema.OPTIONAL_TABLES
