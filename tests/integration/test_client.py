from __future__ import annotations

import datetime as dt
from decimal import Decimal
import json
from pathlib import Path

import pytest

from pocketledger import DuplicateError, LedgerClient, NotFoundError
from pocketledger.models import Expense, Income, Transfer
from pocketledger.sync import SyncMode
from tests.utils.assertions import assert_names, assert_required_keys
from tests.utils.builders import make_account, make_expense, make_schedule, make_transfer


@pytest.mark.sit
def test_client_context_initializes_database(db_path: Path) -> None:
    with LedgerClient(db_path=db_path, config={}) as client:
        assert client.list_accounts() == []
        assert client.get_preferences().default_currency == "EUR"

    assert db_path.exists()


@pytest.mark.sit
def test_client_reads_config_file(isolated_home: Path, tmp_path: Path) -> None:
    config = {
        "db_path": str(tmp_path / "from-config.db"),
        "username": "bob",
        "remote": {"directory": str(tmp_path / "shared")},
        "sync": {"slow_after_seconds": 3},
    }
    (isolated_home / "config.json").write_text(json.dumps(config), encoding="utf-8")

    with LedgerClient() as client:
        assert client.db_path == tmp_path / "from-config.db"
        assert client.username == "bob"
        assert client.remote.directory == tmp_path / "shared"
        assert client.sync_settings.slow_after_seconds == 3.0


@pytest.mark.sit
def test_client_requires_db_path(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        LedgerClient(config={})


@pytest.mark.sit
def test_account_lifecycle(client: LedgerClient) -> None:
    saved = client.add_account(make_account("Checking", initial_balance="100"))

    with pytest.raises(DuplicateError):
        client.add_account(make_account("CHECKING"))

    archived = client.archive_account(saved.id)
    assert archived.is_archived is True
    assert client.list_accounts(include_archived=False) == []
    assert client.restore_account(saved.id).is_archived is False

    renamed = client.update_account(saved.id, name="Main")
    assert client.find_account("main") == renamed

    client.delete_account(saved.id)
    with pytest.raises(NotFoundError):
        client.find_account("Main")


@pytest.mark.sit
def test_add_transaction_checks_accounts(client: LedgerClient) -> None:
    account = client.add_account(make_account("Checking"))

    with pytest.raises(NotFoundError):
        client.add_transaction(make_transfer(account.id, 99, "10", dt.date(2024, 3, 5)))

    assert client.list_transactions() == []


@pytest.mark.sit
def test_update_transaction_changes_variant(client: LedgerClient) -> None:
    checking = client.add_account(make_account("Checking"))
    savings = client.add_account(make_account("Savings"))
    saved = client.add_transaction(
        make_expense(checking.id, "10", dt.date(2024, 3, 5), category="exceptional")
    )

    income = client.update_transaction(saved.id, type="income", amount=Decimal("12"))
    transfer = client.update_transaction(saved.id, type="transfer", to_account_id=savings.id)
    expense = client.update_transaction(saved.id, type="expense", description="Fixed again")

    assert isinstance(income, Income)
    assert income.amount == Decimal("12")
    assert isinstance(transfer, Transfer)
    assert isinstance(expense, Expense)
    assert expense.category is None
    assert expense.id == saved.id
    assert expense.created_at == saved.created_at


@pytest.mark.sit
def test_update_preferences(client: LedgerClient) -> None:
    updated = client.update_preferences(theme="dark", default_currency="USD")

    assert updated.theme.value == "dark"
    assert client.get_preferences().default_currency == "USD"


@pytest.mark.sit
def test_recurring_through_client(client: LedgerClient) -> None:
    account = client.add_account(make_account("Checking"))
    schedule = client.add_recurring(make_schedule(account.id, "9.99", dt.date(2024, 1, 15)))

    created = client.run_recurring(today=dt.date(2024, 3, 20))
    updated = client.update_recurring(schedule.id, disabled=True)

    assert len(created) == 3
    assert client.get_recurring(schedule.id).next_execution == dt.date(2024, 4, 15)
    assert updated.disabled is True
    assert client.run_recurring(today=dt.date(2024, 12, 31)) == []


@pytest.mark.sit
def test_adjustments_and_forecast(client: LedgerClient) -> None:
    account = client.add_account(make_account("Checking", initial_balance="1000"))
    client.add_transaction(make_expense(account.id, "200", dt.date(2024, 3, 10)))

    assert client.forecast_month(account.id, "2024-03").closing_balance == Decimal("800")

    client.set_adjustment(account.id, "2024-03", "500", note="Statement")
    rows = client.monthly_balances(account.id, "2024-03", 2)

    assert [row.closing_balance for row in rows] == [Decimal("500"), Decimal("500")]
    assert client.get_adjustment(account.id, "2024-03").note == "Statement"
    assert len(client.list_adjustments(account.id)) == 1
    assert client.delete_adjustment(account.id, "2024-03") is True

    with pytest.raises(NotFoundError):
        client.set_adjustment(999, "2024-03", "1")


@pytest.mark.sit
def test_clean_old_transactions(client: LedgerClient) -> None:
    account = client.add_account(make_account("Checking"))
    client.add_transaction(make_expense(account.id, "1", dt.date(2021, 1, 1)))
    client.add_transaction(make_expense(account.id, "1", dt.date(2024, 1, 1)))

    removed = client.clean_old_transactions(months=24, today=dt.date(2024, 6, 1))

    assert removed == 1
    assert len(client.list_transactions()) == 1
    with pytest.raises(ValueError):
        client.clean_old_transactions(months=0)


@pytest.mark.sit
def test_export_and_import_replace(client: LedgerClient, tmp_path: Path) -> None:
    checking = client.add_account(make_account("Checking"))
    client.add_transaction(make_expense(checking.id, "25", dt.date(2024, 3, 5)))
    client.set_adjustment(checking.id, "2024-03", "75")

    target = client.export_to_file(tmp_path / "export" / "ledger.json")
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert_required_keys(
        payload, ["accounts", "transactions", "balanceAdjustments", "exportVersion", "appVersion"]
    )

    with LedgerClient(db_path=tmp_path / "restored.db", config={}) as restored:
        restored.add_account(make_account("Scratch"))
        snapshot = restored.import_from_file(target, mode="replace")

        assert_names(snapshot.accounts, ["Checking"])
        assert len(snapshot.transactions) == 1
        assert restored.get_adjustment(checking.id, "2024-03").adjusted_balance == Decimal("75")


@pytest.mark.sit
def test_import_merge_keeps_local_rows(client: LedgerClient, tmp_path: Path) -> None:
    source = client.add_account(make_account("Checking"))
    client.add_transaction(make_expense(source.id, "25", dt.date(2024, 3, 5)))
    payload = client.export_data()

    with LedgerClient(db_path=tmp_path / "other.db", config={}) as other:
        other.add_account(make_account("Cash"))
        snapshot = other.import_data(payload)
        again = other.import_data(payload)

    assert_names(snapshot.accounts, ["Cash", "Checking"])
    assert len(again.transactions) == 1


@pytest.mark.sit
def test_export_single_account(client: LedgerClient) -> None:
    checking = client.add_account(make_account("Checking"))
    cash = client.add_account(make_account("Cash"))
    client.add_transaction(make_expense(checking.id, "1", dt.date(2024, 3, 5)))
    client.add_transaction(make_expense(cash.id, "2", dt.date(2024, 3, 5)))

    payload = client.export_data(account_id=cash.id)

    assert [row["name"] for row in payload["accounts"]] == ["Cash"]
    assert [row["amount"] for row in payload["transactions"]] == ["2"]
    with pytest.raises(NotFoundError):
        client.export_data(account_id=999)


@pytest.mark.sit
def test_import_rejects_bad_input(client: LedgerClient) -> None:
    with pytest.raises(ValueError):
        client.import_data({"transactions": []})

    with pytest.raises(ValueError):
        client.import_data({"accounts": []}, mode="append")


@pytest.mark.sit
def test_sync_persists_state(client: LedgerClient, db_path: Path) -> None:
    client.add_account(make_account("Checking"))

    result = client.sync()

    assert result.mode is SyncMode.BOOTSTRAP
    stored = client.sync_state()
    assert stored.sync_id == result.state.sync_id
    assert db_path.with_suffix(".sync.json").exists()


@pytest.mark.sit
def test_force_flags_through_client(client: LedgerClient) -> None:
    client.add_account(make_account("Checking"))
    client.sync()

    assert client.mark_force_local().force_local_data is True
    result = client.sync()

    assert result.mode is SyncMode.FORCE_LOCAL
    assert client.sync_state().force_local_data is False


@pytest.mark.sit
def test_sync_without_remote_is_usage_error(db_path: Path) -> None:
    with LedgerClient(db_path=db_path, config={}) as client:
        with pytest.raises(ValueError):
            client.sync()
