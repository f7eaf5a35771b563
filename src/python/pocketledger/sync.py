"""Synchronization passes between the local database and the remote store."""

from __future__ import annotations

from dataclasses import dataclass, replace
import datetime as dt
from enum import Enum
import json
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable

from pocketledger.exceptions import RemoteUnreachable
from pocketledger.models import (
    Snapshot,
    SyncState,
    format_timestamp,
    generate_sync_id,
    utc_now,
)
from pocketledger.reconcile import (
    merge_adjustments,
    merge_preferences,
    merge_recurring,
    merge_transactions,
    remap_preferences,
    remap_references,
    resolve_accounts,
)
from pocketledger.remapper import IdentityMap
from pocketledger.remote import Credentials, RemoteStore
from pocketledger.repository import Repository
from pocketledger.schema import BALANCE_ADJUSTMENTS

logger = logging.getLogger(__name__)

DEFAULT_SLOW_AFTER_SECONDS = 15
DEFAULT_ABANDON_AFTER_SECONDS = 60


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    DONE = "done"
    FAILED = "failed"


class SyncHealth(str, Enum):
    RUNNING = "running"
    SLOW = "slow"
    STALLED = "stalled"


class SyncMode(str, Enum):
    MERGE = "merge"
    BOOTSTRAP = "bootstrap"
    FORCE_LOCAL = "force_local"
    FORCE_SERVER = "force_server"


@dataclass(frozen=True)
class SyncSettings:
    """Tunables read from the ``sync`` section of the config file."""

    slow_after_seconds: float = DEFAULT_SLOW_AFTER_SECONDS
    abandon_after_seconds: float = DEFAULT_ABANDON_AFTER_SECONDS
    bootstrap_on_fetch_failure: bool = False

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> SyncSettings:
        config = config or {}
        return cls(
            slow_after_seconds=float(
                config.get("slow_after_seconds", DEFAULT_SLOW_AFTER_SECONDS)
            ),
            abandon_after_seconds=float(
                config.get("abandon_after_seconds", DEFAULT_ABANDON_AFTER_SECONDS)
            ),
            bootstrap_on_fetch_failure=bool(config.get("bootstrap_on_fetch_failure", False)),
        )


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one synchronization pass."""

    status: SyncStatus
    state: SyncState
    mode: SyncMode | None = None
    message: str = ""
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.DONE


class SyncSession:
    """Tracks the pass in flight for status reporting and liveness checks."""

    def __init__(
        self,
        settings: SyncSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or SyncSettings()
        self.clock = clock
        self.status = SyncStatus.IDLE
        self.initial_sync = False
        self.progress = 0
        self.started_at: float | None = None
        self._token: object | None = None

    def start(self, initial_sync: bool = False) -> object:
        self._token = object()
        self.status = SyncStatus.SYNCING
        self.initial_sync = initial_sync
        self.progress = 0
        self.started_at = self.clock()
        return self._token

    def is_current(self, token: object) -> bool:
        return token is not None and token is self._token

    def report(self, token: object, progress: int) -> None:
        if self.is_current(token):
            self.progress = progress

    def finish(self, token: object, status: SyncStatus) -> None:
        if not self.is_current(token):
            return
        self.status = status
        self.initial_sync = False
        self.started_at = None
        self._token = None

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    def health(self) -> SyncHealth | None:
        """Report liveness of the pass in flight; None when idle."""
        if self.status is not SyncStatus.SYNCING:
            return None
        elapsed = self.elapsed()
        if elapsed >= self.settings.abandon_after_seconds:
            return SyncHealth.STALLED
        if elapsed >= self.settings.slow_after_seconds:
            return SyncHealth.SLOW
        return SyncHealth.RUNNING

    def abandon(self) -> None:
        """Forget the pass in flight so a new one may start.

        The abandoned pass stops at its next checkpoint; it never commits or
        pushes.
        """
        if self._token is None:
            return
        logger.warning("Abandoning sync pass after %.1f seconds", self.elapsed())
        self._token = None
        self.status = SyncStatus.FAILED
        self.initial_sync = False
        self.started_at = None


class SyncStateStore:
    """Persist SyncState as JSON beside the database."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> SyncState:
        """Return the stored state, creating one with a new device id if needed."""
        payload = self._read()
        if payload is not None:
            try:
                return SyncState(
                    device_id=payload["deviceId"],
                    sync_id=payload.get("syncId"),
                    last_sync_time=payload.get("lastSyncTime"),
                    force_local_data=bool(payload.get("forceLocalData", False)),
                    needs_server_data=bool(payload.get("needsServerData", False)),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Ignoring malformed sync state %s: %s", self.path, exc)
        state = SyncState()
        self.save(state)
        return state

    def save(self, state: SyncState) -> None:
        payload = {
            "deviceId": state.device_id,
            "syncId": state.sync_id,
            "lastSyncTime": (
                format_timestamp(state.last_sync_time) if state.last_sync_time else None
            ),
            "forceLocalData": state.force_local_data,
            "needsServerData": state.needs_server_data,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)

    def mark_force_local(self) -> SyncState:
        """Arm the one-shot flag that pushes local data on the next pass."""
        state = replace(self.load(), force_local_data=True)
        self.save(state)
        return state

    def mark_needs_server_data(self) -> SyncState:
        """Arm the one-shot flag that replaces local data on the next pass."""
        state = replace(self.load(), needs_server_data=True)
        self.save(state)
        return state

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Cannot read sync state %s: %s", self.path, exc)
            return None
        return payload if isinstance(payload, dict) else None


class _PassFailed(Exception):
    """Internal signal that ends a pass with a FAILED result."""


def apply_merge(
    repository: Repository,
    local: Snapshot,
    remote: Snapshot,
    on_stage: Callable[[int], None] | None = None,
    adjustments_from_server: bool = False,
) -> IdentityMap:
    """Merge a remote snapshot into the local store, kind by kind.

    Accounts are resolved first so that every other kind can be remapped onto
    local account ids. Kinds missing from ``remote`` are left alone. With
    ``adjustments_from_server`` remote adjustments override local ones
    wholesale. The caller owns the surrounding transaction.
    """
    report = on_stage or (lambda value: None)
    identity_map = IdentityMap()

    if remote.accounts is not None:
        resolution = resolve_accounts(local.accounts or [], remote.accounts)
        for remote_id, local_id in resolution.matches.items():
            identity_map.register(remote_id, local_id)
        for account in resolution.plan.updated:
            repository.update_account(account, preserve_timestamps=True)
        for account in resolution.plan.created:
            stored = repository.insert_account(replace(account, id=None), preserve_timestamps=True)
            identity_map.register(account.id, stored.id)
        logger.debug(
            "Accounts: %d created, %d updated",
            len(resolution.plan.created),
            len(resolution.plan.updated),
        )
    report(40)

    if remote.balance_adjustments is not None:
        if repository.is_available(BALANCE_ADJUSTMENTS):
            plan = merge_adjustments(
                local.balance_adjustments or [],
                remap_references(remote.balance_adjustments, identity_map),
                remote_wins=adjustments_from_server,
            )
            for adjustment in plan.updated:
                repository.update_adjustment(adjustment, preserve_timestamps=True)
            for adjustment in plan.created:
                repository.insert_adjustment(replace(adjustment, id=None), preserve_timestamps=True)
        else:
            logger.warning("Skipping remote adjustments: local table is unavailable")
    report(50)

    if remote.transactions is not None:
        plan = merge_transactions(
            local.transactions or [], remap_references(remote.transactions, identity_map)
        )
        for transaction in plan.updated:
            repository.update_transaction(transaction, preserve_timestamps=True)
        for transaction in plan.created:
            repository.insert_transaction(replace(transaction, id=None), preserve_timestamps=True)
        logger.debug("Transactions: %d created, %d updated", len(plan.created), len(plan.updated))
    report(60)

    if remote.recurring_transactions is not None:
        plan = merge_recurring(
            local.recurring_transactions or [],
            remap_references(remote.recurring_transactions, identity_map),
        )
        for recurring in plan.updated:
            repository.update_recurring(recurring, preserve_timestamps=True)
        for recurring in plan.created:
            repository.insert_recurring(replace(recurring, id=None), preserve_timestamps=True)
    report(70)

    preferences = merge_preferences(
        local.preferences, remap_preferences(remote.preferences, identity_map)
    )
    if preferences is not None:
        repository.save_preferences(preferences, preserve_timestamps=True)
    return identity_map


class SyncOrchestrator:
    """Run synchronization passes, at most one at a time.

    A pass reads the local snapshot, exchanges it with the remote store and
    applies the merge inside one local transaction that is committed only
    after the merged snapshot has been pushed. The guard follows the session:
    once a stuck pass is abandoned a new one may start, and the abandoned pass
    stops at its next checkpoint without writing or pushing.
    """

    def __init__(
        self,
        repository: Repository,
        remote: RemoteStore,
        credentials: Credentials,
        settings: SyncSettings | None = None,
        session: SyncSession | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        self.repository = repository
        self.remote = remote
        self.credentials = credentials
        self.settings = settings or SyncSettings()
        self.session = session or SyncSession(self.settings)
        self.on_progress = on_progress
        self._lock = threading.Lock()
        self._transaction_owner: object | None = None

    def synchronize(
        self,
        state: SyncState,
        force_server_data: bool = False,
        initial_sync: bool = False,
    ) -> SyncResult:
        """Run one pass and return its result. Never raises."""
        with self._lock:
            if self.session.status is SyncStatus.SYNCING:
                logger.info("Sync already in progress; skipping")
                return SyncResult(
                    SyncStatus.SYNCING, state, message="Sync already in progress", skipped=True
                )
            token = self.session.start(initial_sync)
        logger.info("Starting sync for %s", self.credentials.username)
        try:
            result = self._run_pass(token, state, force_server_data)
        except _PassFailed as exc:
            logger.error("Sync failed: %s", exc)
            result = SyncResult(SyncStatus.FAILED, state, message=str(exc))
        except Exception as exc:
            logger.exception("Sync failed unexpectedly")
            result = SyncResult(SyncStatus.FAILED, state, message=str(exc))
        with self._lock:
            self.session.finish(token, result.status)
        if result.ok:
            logger.info("Sync finished (%s)", result.mode.value)
        return result

    def _run_pass(self, token: object, state: SyncState, force_server_data: bool) -> SyncResult:
        repository = self.repository
        if self._transaction_owner is not None and repository.in_transaction:
            logger.warning("Rolling back the transaction of an abandoned sync pass")
            repository.rollback()
        repository.begin_transaction()
        self._transaction_owner = token
        try:
            mode, sync_id, now = self._exchange(token, state, force_server_data)
        except BaseException:
            if self._transaction_owner is token:
                self._transaction_owner = None
                if repository.in_transaction:
                    repository.rollback()
            raise
        self._transaction_owner = None
        repository.commit()
        new_state = replace(
            state,
            sync_id=sync_id,
            last_sync_time=now,
            force_local_data=False,
            needs_server_data=False,
        )
        self._progress(token, 100)
        return SyncResult(SyncStatus.DONE, new_state, mode=mode)

    def _exchange(
        self, token: object, state: SyncState, force_server_data: bool
    ) -> tuple[SyncMode, str, dt.datetime]:
        repository = self.repository
        local = repository.read_snapshot()
        self._progress(token, 10)

        if state.force_local_data:
            logger.info("Pushing local data over the remote copy")
            return self._push(token, local, generate_sync_id(), state, SyncMode.FORCE_LOCAL)

        try:
            remote = self.remote.load_snapshot(self.credentials)
        except RemoteUnreachable as exc:
            if not self.settings.bootstrap_on_fetch_failure:
                raise _PassFailed(f"Remote store unreachable: {exc}") from exc
            logger.warning("Remote store unreachable, bootstrapping from local data: %s", exc)
            remote = None
        self._ensure_current(token)
        self._progress(token, 30)

        if remote is None or not remote.has_accounts:
            if force_server_data or state.needs_server_data:
                raise _PassFailed("Server data was requested but the remote store has none")
            logger.info("Remote store is empty; pushing local data")
            return self._push(token, local, generate_sync_id(), state, SyncMode.BOOTSTRAP)

        if state.needs_server_data:
            logger.info("Replacing local data with the remote copy")
            repository.replace_all(remote)
            mode = SyncMode.FORCE_SERVER
        else:
            apply_merge(
                repository,
                local,
                remote,
                lambda value: self._progress(token, value),
                adjustments_from_server=force_server_data,
            )
            mode = SyncMode.FORCE_SERVER if force_server_data else SyncMode.MERGE
        self._progress(token, 80)

        merged = repository.read_snapshot()
        return self._push(token, merged, remote.sync_id or generate_sync_id(), state, mode)

    def _ensure_current(self, token: object) -> None:
        if not self.session.is_current(token):
            raise _PassFailed("Sync pass was abandoned")

    def _push(
        self,
        token: object,
        snapshot: Snapshot,
        sync_id: str,
        state: SyncState,
        mode: SyncMode,
    ) -> tuple[SyncMode, str, dt.datetime]:
        self._ensure_current(token)
        self._progress(token, 90)
        now = utc_now()
        outgoing = replace(
            snapshot, sync_id=sync_id, device_id=state.device_id, last_sync_time=now
        )
        if not self.remote.save_snapshot(self.credentials, outgoing):
            raise _PassFailed("Remote store rejected the snapshot")
        return mode, sync_id, now

    def _progress(self, token: object, value: int) -> None:
        self.session.report(token, value)
        if self.on_progress is not None and self.session.is_current(token):
            self.on_progress(value)
