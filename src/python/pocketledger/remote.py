"""Remote snapshot storage: HTTP service or a shared directory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any

import requests

from pocketledger.exceptions import RemoteUnreachable
from pocketledger.models import Snapshot
from pocketledger.snapshot import decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15


@dataclass(frozen=True)
class Credentials:
    """Username and password forwarded to the remote store."""

    username: str
    password: str = ""

    def __post_init__(self) -> None:
        if not self.username or not self.username.strip():
            raise ValueError("Username is required")
        object.__setattr__(self, "username", self.username.strip())

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class RemoteStore(ABC):
    """Authoritative per-user snapshot store."""

    @abstractmethod
    def load_snapshot(self, credentials: Credentials) -> Snapshot | None:
        """Return the user's snapshot, or None when nothing is stored.

        Raises RemoteUnreachable when the store cannot be reached.
        """

    @abstractmethod
    def save_snapshot(self, credentials: Credentials, snapshot: Snapshot) -> bool:
        """Replace the user's snapshot in one call; False on failure."""


class HttpRemoteStore(RemoteStore):
    """Snapshot storage behind the ``/data`` and ``/save`` endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def load_snapshot(self, credentials: Credentials) -> Snapshot | None:
        body = self._post(
            "data", {"username": credentials.username, "password": credentials.password}
        )
        if not body.get("success"):
            raise RemoteUnreachable(body.get("message") or "Remote store rejected the request")
        data = body.get("data")
        if not data:
            return None
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as exc:
                raise RemoteUnreachable("Remote snapshot is not valid JSON") from exc
        if not isinstance(data, dict):
            raise RemoteUnreachable("Remote snapshot is not an object")
        return decode_snapshot(data)

    def save_snapshot(self, credentials: Credentials, snapshot: Snapshot) -> bool:
        try:
            body = self._post(
                "save",
                {
                    "username": credentials.username,
                    "password": credentials.password,
                    "data": encode_snapshot(snapshot),
                },
            )
        except RemoteUnreachable as exc:
            logger.error("Failed to save snapshot for %s: %s", credentials.username, exc)
            return False
        return bool(body.get("success"))

    def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise RemoteUnreachable(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteUnreachable(f"Response from {url} is not JSON") from exc
        if not isinstance(body, dict):
            raise RemoteUnreachable(f"Unexpected response from {url}")
        return body


class FileRemoteStore(RemoteStore):
    """One JSON file per user in a shared directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, username: str) -> Path:
        digest = hashlib.sha256(username.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def load_snapshot(self, credentials: Credentials) -> Snapshot | None:
        path = self.path_for(credentials.username)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise RemoteUnreachable(f"Cannot read {path}: {exc}") from exc
        return decode_snapshot(payload)

    def save_snapshot(self, credentials: Credentials, snapshot: Snapshot) -> bool:
        path = self.path_for(credentials.username)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(encode_snapshot(snapshot), handle, indent=2)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to write snapshot %s: %s", path, exc)
            return False
        return True
