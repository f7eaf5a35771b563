"""Pytest configuration and fixtures for system integration tests.

Every fixture works on a fresh database under ``tmp_path``; no test touches
the user's real ledger or config directory.
"""
from __future__ import annotations

from pathlib import Path
import sys

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from pocketledger.client import LedgerClient  # noqa: E402
from pocketledger.remote import Credentials, FileRemoteStore  # noqa: E402
from pocketledger.repository import Repository  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config directory at an empty temporary folder."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("POCKETLEDGER_HOME", str(home))
    monkeypatch.delenv("POCKETLEDGER_PASSWORD", raising=False)
    return home


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Path of a database file that does not exist yet."""
    return tmp_path / "ledger.db"


@pytest.fixture()
def repository(db_path: Path) -> Repository:
    """Connected repository with the current schema."""
    repo = Repository(db_path)
    repo.connect()
    repo.initialize()
    yield repo
    repo.close()


@pytest.fixture()
def remote_dir(tmp_path: Path) -> Path:
    path = tmp_path / "remote"
    path.mkdir()
    return path


@pytest.fixture()
def remote_store(remote_dir: Path) -> FileRemoteStore:
    return FileRemoteStore(remote_dir)


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials("alice", "secret")


@pytest.fixture()
def client(db_path: Path, remote_store: FileRemoteStore) -> LedgerClient:
    """Open client wired to a directory-backed remote store."""
    with LedgerClient(
        db_path=db_path, remote=remote_store, username="alice", password="secret", config={}
    ) as ledger:
        yield ledger
