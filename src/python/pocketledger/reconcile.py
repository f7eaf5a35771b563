"""Pure merge stages used to reconcile a local and a remote snapshot.

Every stage takes immutable entities and returns new ones; nothing here touches
storage. The orchestrator applies the resulting plans.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
import logging
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

from pocketledger.models import (
    Account,
    BalanceAdjustment,
    Preferences,
    RecurringTransaction,
    Transaction,
    account_name_key,
)
from pocketledger.remapper import IdentityMap

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")


def is_more_recent(candidate: Any, reference: Any) -> bool:
    """Return True when ``candidate`` was modified strictly after ``reference``.

    Ties favour the reference. A candidate without a timestamp never wins; a
    timestamped candidate beats a reference without one.
    """
    candidate_stamp = getattr(candidate, "updated_at", None)
    reference_stamp = getattr(reference, "updated_at", None)
    if candidate_stamp is None:
        return False
    if reference_stamp is None:
        return True
    return candidate_stamp > reference_stamp


def account_key(account: Account) -> Hashable:
    return account_name_key(account.name)


def transaction_key(transaction: Transaction) -> Hashable:
    return (
        transaction.account_id,
        transaction.amount,
        transaction.description,
        transaction.date,
    )


def recurring_key(recurring: RecurringTransaction) -> Hashable:
    return (
        recurring.account_id,
        recurring.amount,
        recurring.description,
        recurring.frequency,
    )


def adjustment_key(adjustment: BalanceAdjustment) -> Hashable:
    return (adjustment.account_id, adjustment.year_month)


@dataclass
class MergePlan(Generic[EntityT]):
    """Outcome of merging one entity kind.

    ``created`` holds remote entities with no local counterpart (still carrying
    remote ids), ``updated`` holds remote winners rebased on the local id and
    creation time, ``unchanged`` holds local entities kept as they are.
    """

    created: list[EntityT] = field(default_factory=list)
    updated: list[EntityT] = field(default_factory=list)
    unchanged: list[EntityT] = field(default_factory=list)

    def merged(self) -> list[EntityT]:
        return [*self.unchanged, *self.updated, *self.created]

    @property
    def is_empty(self) -> bool:
        return not self.created and not self.updated


def merge_entities(
    local: Iterable[EntityT],
    remote: Iterable[EntityT],
    natural_key: Callable[[EntityT], Hashable],
    is_newer: Callable[[Any, Any], bool] = is_more_recent,
    unique: bool = False,
) -> MergePlan[EntityT]:
    """Merge one kind by natural key, most recent modification winning.

    Entities sharing a key are paired one to one in iteration order, so two
    identical rows on both sides stay two rows. Remote entities left without a
    local partner are created; local entities without one are kept. With
    ``unique`` only the first remote entity for a key takes part, for kinds the
    store keeps unique per key.
    """
    local = list(local)
    partners: dict[Hashable, deque[EntityT]] = defaultdict(deque)
    for entity in local:
        partners[natural_key(entity)].append(entity)

    plan: MergePlan[EntityT] = MergePlan()
    replaced: set[int] = set()
    seen_remote: set[Hashable] = set()
    for candidate in remote:
        key = natural_key(candidate)
        if unique:
            if key in seen_remote:
                logger.debug("Ignoring repeated remote entity for key %r", key)
                continue
            seen_remote.add(key)
        waiting = partners.get(key)
        if not waiting:
            plan.created.append(candidate)
            continue
        current = waiting.popleft()
        if is_newer(candidate, current):
            logger.debug("Remote entity wins for key %r", key)
            plan.updated.append(
                replace(candidate, id=current.id, created_at=current.created_at)
            )
            replaced.add(id(current))
    plan.unchanged = [entity for entity in local if id(entity) not in replaced]
    return plan


@dataclass
class AccountResolution:
    """Merged accounts plus remote-to-local matches for existing accounts."""

    plan: MergePlan[Account]
    matches: dict[int, int] = field(default_factory=dict)


def resolve_accounts(local: Iterable[Account], remote: Iterable[Account]) -> AccountResolution:
    """Match remote accounts to local ones by case-insensitive name."""
    local = list(local)
    remote = list(remote)
    plan = merge_entities(local, remote, account_key, unique=True)
    local_by_key: dict[Hashable, Account] = {}
    for account in local:
        local_by_key.setdefault(account_key(account), account)
    matches = {}
    for account in remote:
        current = local_by_key.get(account_key(account))
        if current is not None and account.id is not None:
            matches[account.id] = current.id
    return AccountResolution(plan=plan, matches=matches)


def remap_references(entities: Iterable[EntityT], identity_map: IdentityMap) -> list[EntityT]:
    """Rewrite account references.

    An entity that would become invalid once remapped, such as a transfer whose
    two accounts collapse onto one local account, keeps its references as
    received.
    """
    remapped = []
    for entity in entities:
        try:
            remapped.append(identity_map.remap(entity))
        except ValueError as exc:
            logger.warning("Keeping remote references of %r unmapped: %s", entity, exc)
            remapped.append(entity)
    return remapped


def merge_transactions(
    local: Iterable[Transaction], remote: Iterable[Transaction]
) -> MergePlan[Transaction]:
    return merge_entities(local, remote, transaction_key)


def merge_recurring(
    local: Iterable[RecurringTransaction], remote: Iterable[RecurringTransaction]
) -> MergePlan[RecurringTransaction]:
    """Merge schedules; a winning schedule never moves ``next_execution`` back."""
    local = list(local)
    plan = merge_entities(local, remote, recurring_key)
    by_id = {schedule.id: schedule for schedule in local}
    progressed = []
    for schedule in plan.updated:
        current = by_id.get(schedule.id)
        if current is not None and current.next_execution > schedule.next_execution:
            schedule = replace(
                schedule,
                next_execution=current.next_execution,
                last_executed=current.last_executed,
            )
        progressed.append(schedule)
    plan.updated = progressed
    return plan


def merge_adjustments(
    local: Iterable[BalanceAdjustment],
    remote: Iterable[BalanceAdjustment],
    remote_wins: bool = False,
) -> MergePlan[BalanceAdjustment]:
    """Merge adjustments, one per account and month.

    With ``remote_wins`` every remote adjustment overrides its local
    counterpart regardless of modification time.
    """
    is_newer = (lambda candidate, reference: True) if remote_wins else is_more_recent
    return merge_entities(local, remote, adjustment_key, is_newer, unique=True)


def remap_preferences(
    preferences: Preferences | None, identity_map: IdentityMap
) -> Preferences | None:
    if preferences is None or preferences.default_account_id is None:
        return preferences
    resolved = identity_map.resolve(preferences.default_account_id)
    if resolved == preferences.default_account_id:
        return preferences
    return replace(preferences, default_account_id=resolved)


def merge_preferences(
    local: Preferences | None, remote: Preferences | None
) -> Preferences | None:
    """Return the preferences to write locally, or None to keep the local row."""
    if remote is None:
        return None
    if local is None:
        return remote
    if is_more_recent(remote, local):
        return replace(remote, id=local.id, created_at=local.created_at)
    return None
