"""Recurring transaction schedules: stepping and materialization."""

from __future__ import annotations

from dataclasses import replace
import datetime as dt
import logging
from typing import Iterator

from dateutil.relativedelta import relativedelta

from pocketledger.models import Frequency, RecurringTransaction, Transaction
from pocketledger.repository import Repository

logger = logging.getLogger(__name__)

FREQUENCY_STEPS = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.BIWEEKLY: relativedelta(weeks=2),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}


def advance(day: dt.date, frequency: Frequency | str) -> dt.date:
    """Return the occurrence following ``day``.

    Month-based steps clamp to the end of shorter months (Jan 31 -> Feb 28).
    """
    return day + FREQUENCY_STEPS[Frequency(frequency)]


def occurrences(
    schedule: RecurringTransaction, start: dt.date, end: dt.date
) -> Iterator[dt.date]:
    """Yield the schedule's pending occurrences between two dates inclusive.

    Only occurrences on or after ``next_execution`` are pending; earlier ones
    have already been materialized as transactions.
    """
    if schedule.disabled:
        return
    limit = end if schedule.end_date is None else min(end, schedule.end_date)
    day = schedule.next_execution
    while day <= limit:
        if day >= start and schedule.is_active_on(day):
            yield day
        day = advance(day, schedule.frequency)


def execute_due(repository: Repository, today: dt.date) -> list[Transaction]:
    """Materialize every occurrence due on or before ``today``.

    Each occurrence becomes one transaction dated on the occurrence, and
    ``next_execution`` moves one step per occurrence. Schedules whose account
    no longer exists are disabled instead.
    """
    created: list[Transaction] = []
    account_ids = {account.id for account in repository.list_accounts()}
    for schedule in repository.list_due_recurring(today):
        missing = schedule.account_id not in account_ids or (
            schedule.to_account_id is not None and schedule.to_account_id not in account_ids
        )
        if missing:
            logger.warning(
                "Disabling recurring transaction %s: its account no longer exists", schedule.id
            )
            repository.update_recurring(replace(schedule, disabled=True))
            continue
        next_execution = schedule.next_execution
        last_executed = schedule.last_executed
        while next_execution <= today and schedule.is_active_on(next_execution):
            created.append(repository.insert_transaction(schedule.materialize(next_execution)))
            last_executed = next_execution
            next_execution = advance(next_execution, schedule.frequency)
        if next_execution != schedule.next_execution:
            repository.update_recurring(
                replace(schedule, next_execution=next_execution, last_executed=last_executed)
            )
    if created:
        logger.info("Materialized %d recurring transactions", len(created))
    return created
