"""Translate remote account identifiers to local ones during a sync pass."""

from __future__ import annotations

from dataclasses import replace
from typing import TypeVar

EntityT = TypeVar("EntityT")


class IdentityMap:
    """Remote account id to local account id mapping for one pass.

    Unknown identifiers pass through unchanged.
    """

    def __init__(self) -> None:
        self._mapping: dict[int, int] = {}

    def register(self, remote_id: int | None, local_id: int) -> None:
        if remote_id is None:
            return
        self._mapping[remote_id] = local_id

    def resolve(self, account_id: int | None) -> int | None:
        if account_id is None:
            return None
        return self._mapping.get(account_id, account_id)

    def remap(self, entity: EntityT) -> EntityT:
        """Return the entity with its account references rewritten."""
        changes = {}
        account_id = getattr(entity, "account_id", None)
        if account_id is not None and self.resolve(account_id) != account_id:
            changes["account_id"] = self.resolve(account_id)
        to_account_id = getattr(entity, "to_account_id", None)
        if to_account_id is not None and self.resolve(to_account_id) != to_account_id:
            changes["to_account_id"] = self.resolve(to_account_id)
        if not changes:
            return entity
        return replace(entity, **changes)

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, remote_id: object) -> bool:
        return remote_id in self._mapping
