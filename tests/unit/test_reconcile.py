from __future__ import annotations

import datetime as dt

from pocketledger.models import Preferences
from pocketledger.reconcile import (
    is_more_recent,
    merge_adjustments,
    merge_entities,
    merge_preferences,
    merge_recurring,
    merge_transactions,
    remap_preferences,
    remap_references,
    resolve_accounts,
    transaction_key,
)
from pocketledger.remapper import IdentityMap
from tests.utils.builders import (
    EARLY,
    LATE,
    make_account,
    make_adjustment,
    make_expense,
    make_schedule,
    make_transfer,
)


def test_is_more_recent_is_strict() -> None:
    older = make_account("Checking", updated_at=EARLY)
    newer = make_account("Checking", updated_at=LATE)
    unstamped = make_account("Checking")

    assert is_more_recent(newer, older)
    assert not is_more_recent(older, newer)
    assert not is_more_recent(older, make_account("Checking", updated_at=EARLY))
    assert not is_more_recent(unstamped, older)
    assert is_more_recent(older, unstamped)


def test_resolve_accounts_matches_names_case_insensitively() -> None:
    local = [make_account("Savings", id=1, updated_at=EARLY)]
    remote = [make_account("savings", id=9, updated_at=EARLY)]

    resolution = resolve_accounts(local, remote)

    assert resolution.plan.created == []
    assert resolution.plan.updated == []
    assert resolution.matches == {9: 1}
    assert [account.name for account in resolution.plan.merged()] == ["Savings"]


def test_resolve_accounts_newer_remote_wins_on_local_id() -> None:
    local = [
        make_account("Savings", id=1, initial_balance="10", created_at=EARLY, updated_at=EARLY)
    ]
    remote = [
        make_account("Savings", id=4, initial_balance="99", created_at=LATE, updated_at=LATE)
    ]

    resolution = resolve_accounts(local, remote)

    assert len(resolution.plan.updated) == 1
    winner = resolution.plan.updated[0]
    assert winner.id == 1
    assert winner.created_at == EARLY
    assert str(winner.initial_balance) == "99"
    assert resolution.plan.unchanged == []


def test_resolve_accounts_keeps_local_only_and_creates_remote_only() -> None:
    local = [make_account("Checking", id=1, updated_at=EARLY)]
    remote = [make_account("Travel", id=2, updated_at=EARLY)]

    resolution = resolve_accounts(local, remote)

    assert [account.name for account in resolution.plan.unchanged] == ["Checking"]
    assert [account.name for account in resolution.plan.created] == ["Travel"]
    assert resolution.matches == {}


def test_merge_is_idempotent() -> None:
    day = dt.date(2024, 3, 5)
    local = [make_expense(1, "40", day, description="Groceries", id=1, updated_at=EARLY)]
    remote = [make_expense(1, "40", day, description="Groceries", id=5, updated_at=EARLY)]

    first = merge_transactions(local, remote)
    second = merge_transactions(first.merged(), remote)

    assert first.is_empty
    assert second.is_empty
    assert first.merged() == second.merged() == local


def test_merge_keeps_identical_remote_transactions() -> None:
    day = dt.date(2024, 3, 5)
    remote = [
        make_expense(1, "3.50", day, description="Coffee", id=5, updated_at=EARLY),
        make_expense(1, "3.50", day, description="Coffee", id=6, updated_at=EARLY),
    ]

    plan = merge_transactions([], remote)

    assert [txn.id for txn in plan.created] == [5, 6]


def test_merge_pairs_identical_transactions_one_to_one() -> None:
    day = dt.date(2024, 3, 5)
    local = [make_expense(1, "3.50", day, description="Coffee", id=1, updated_at=EARLY)]
    remote = [
        make_expense(1, "3.50", day, description="Coffee", id=5, updated_at=EARLY),
        make_expense(1, "3.50", day, description="Coffee", id=6, updated_at=EARLY),
    ]

    plan = merge_transactions(local, remote)
    again = merge_transactions(plan.merged(), remote)

    assert [txn.id for txn in plan.unchanged] == [1]
    assert [txn.id for txn in plan.created] == [6]
    assert again.is_empty
    assert len(again.merged()) == 2


def test_merge_adjustments_ignore_repeated_remote_keys() -> None:
    remote = [
        make_adjustment(1, "2024-03", "450", id=7, updated_at=EARLY),
        make_adjustment(1, "2024-03", "460", id=8, updated_at=LATE),
    ]

    plan = merge_adjustments([], remote)

    assert [item.id for item in plan.created] == [7]


def test_merge_entities_uses_custom_recency() -> None:
    local = [make_account("Checking", id=1)]
    remote = [make_account("Checking", id=2)]

    plan = merge_entities(
        local, remote, lambda account: account.name.lower(), lambda candidate, reference: True
    )

    assert [account.id for account in plan.updated] == [1]


def test_transaction_key_uses_natural_fields() -> None:
    day = dt.date(2024, 3, 5)
    first = make_expense(1, "40", day, description="Groceries", id=1)
    second = make_expense(1, "40.00", day, description="Groceries", id=2)

    assert transaction_key(first) == transaction_key(second)


def test_remap_references_keeps_invalid_entities_unmapped() -> None:
    identity_map = IdentityMap()
    identity_map.register(10, 1)
    identity_map.register(20, 2)
    day = dt.date(2024, 3, 5)
    transfers = [
        make_transfer(10, 20, "50", day, id=1),
        # Both ends collapse onto local account 1.
        make_transfer(10, 30, "50", day, id=2),
    ]
    identity_map.register(30, 1)

    remapped = remap_references(transfers, identity_map)

    assert len(remapped) == 2
    assert (remapped[0].account_id, remapped[0].to_account_id) == (1, 2)
    assert remapped[1] == transfers[1]


def test_merge_recurring_keeps_later_next_execution() -> None:
    start = dt.date(2024, 1, 1)
    local = [
        make_schedule(
            1,
            "15",
            start,
            description="Streaming",
            id=3,
            next_execution=dt.date(2024, 5, 1),
            last_executed=dt.date(2024, 4, 1),
            updated_at=EARLY,
        )
    ]
    remote = [
        make_schedule(
            1,
            "15",
            start,
            description="Streaming",
            id=8,
            next_execution=dt.date(2024, 3, 1),
            end_date=dt.date(2024, 12, 31),
            updated_at=LATE,
        )
    ]

    plan = merge_recurring(local, remote)

    winner = plan.updated[0]
    assert winner.id == 3
    assert winner.end_date == dt.date(2024, 12, 31)
    assert winner.next_execution == dt.date(2024, 5, 1)
    assert winner.last_executed == dt.date(2024, 4, 1)


def test_merge_adjustments_by_account_and_month() -> None:
    local = [make_adjustment(1, "2024-03", "500", id=1, updated_at=LATE)]
    remote = [
        make_adjustment(1, "2024-03", "450", id=7, updated_at=EARLY),
        make_adjustment(1, "2024-04", "600", id=8, updated_at=EARLY),
    ]

    plan = merge_adjustments(local, remote)

    assert plan.updated == []
    assert [item.year_month for item in plan.created] == ["2024-04"]
    assert [str(item.adjusted_balance) for item in plan.unchanged] == ["500"]


def test_merge_preferences() -> None:
    local = Preferences(theme="dark", id=1, created_at=EARLY, updated_at=EARLY)
    remote = Preferences(theme="cyber", id=5, created_at=LATE, updated_at=LATE)

    merged = merge_preferences(local, remote)

    assert merged.theme.value == "cyber"
    assert merged.id == 1
    assert merged.created_at == EARLY
    assert merge_preferences(remote, local) is None
    assert merge_preferences(local, None) is None
    assert merge_preferences(None, remote) is remote


def test_remap_preferences_default_account() -> None:
    identity_map = IdentityMap()
    identity_map.register(9, 2)

    remapped = remap_preferences(Preferences(default_account_id=9), identity_map)

    assert remapped.default_account_id == 2
    assert remap_preferences(None, identity_map) is None


def test_merge_adjustments_remote_wins_regardless_of_age() -> None:
    local = [make_adjustment(1, "2024-03", "500", id=1, created_at=EARLY, updated_at=LATE)]
    remote = [make_adjustment(1, "2024-03", "450", id=7, updated_at=EARLY)]

    plan = merge_adjustments(local, remote, remote_wins=True)

    assert [str(item.adjusted_balance) for item in plan.updated] == ["450"]
    assert plan.updated[0].id == 1
    assert plan.unchanged == []
