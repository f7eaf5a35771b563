from __future__ import annotations

import datetime as dt

from pocketledger.remapper import IdentityMap
from tests.utils.builders import make_account, make_expense, make_schedule


def test_unknown_ids_pass_through() -> None:
    identity_map = IdentityMap()

    assert identity_map.resolve(5) == 5
    assert identity_map.resolve(None) is None
    assert len(identity_map) == 0


def test_register_ignores_missing_remote_id() -> None:
    identity_map = IdentityMap()
    identity_map.register(None, 3)
    identity_map.register(7, 3)

    assert len(identity_map) == 1
    assert 7 in identity_map
    assert None not in identity_map


def test_remap_rewrites_account_references() -> None:
    identity_map = IdentityMap()
    identity_map.register(7, 3)
    expense = make_expense(7, "12", dt.date(2024, 3, 5), id=11)
    schedule = make_schedule(7, "12", dt.date(2024, 3, 5), type="transfer", to_account_id=8)

    assert identity_map.remap(expense).account_id == 3
    assert identity_map.remap(expense).id == 11
    remapped = identity_map.remap(schedule)
    assert (remapped.account_id, remapped.to_account_id) == (3, 8)


def test_remap_returns_same_entity_when_nothing_changes() -> None:
    identity_map = IdentityMap()
    account = make_account("Checking", id=1)
    expense = make_expense(1, "12", dt.date(2024, 3, 5))

    assert identity_map.remap(account) is account
    assert identity_map.remap(expense) is expense
