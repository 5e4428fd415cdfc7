from __future__ import annotations

import datetime as dt
from collections.abc import Iterator
from pathlib import Path

import pytest

from notesync.connectivity import Connectivity
from notesync.engine import SyncEngine, build_engine
from notesync.errors import NotFound, RemoteUnavailable, ValidationError
from notesync.store import NoteStore, RemoteNote


class FakeRemote:
    """In-memory notes collection with switchable availability."""

    def __init__(self) -> None:
        self.records: dict[str, dict] = {}
        self.available = True
        self.calls: list[tuple[str, str]] = []
        self.lose_create_responses = False
        self.fail_deletes = False
        self._next_id = 0

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if not self.available:
            raise RemoteUnavailable(f"{op}: offline")

    def count(self, op: str) -> int:
        return sum(1 for name, _key in self.calls if name == op)

    def seed(
        self, title: str, tags: list[str] | None = None, *, local_id: str | None = None
    ) -> str:
        self._next_id += 1
        remote_id = f"r{self._next_id}"
        self.records[remote_id] = {
            "title": title,
            "tags": list(tags or []),
            "local_id": local_id,
            "created_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        return remote_id

    def create_remote(self, title: str, tags: list[str], local_id: str, created_at: str) -> str:
        self._check("create", local_id)
        if not title.strip():
            raise ValidationError("missing title")
        self._next_id += 1
        remote_id = f"r{self._next_id}"
        self.records[remote_id] = {
            "title": title,
            "tags": list(tags),
            "local_id": local_id,
            "created_at": created_at,
        }
        if self.lose_create_responses:
            raise RemoteUnavailable("connection reset after create")
        return remote_id

    def read_all_remote(self) -> list[RemoteNote]:
        self._check("read_all", "")
        return [
            {
                "remote_id": remote_id,
                "title": record["title"],
                "tags": list(record["tags"]),
                "created_at": record["created_at"],
                "local_id": record["local_id"],
            }
            for remote_id, record in self.records.items()
        ]

    def update_remote(self, remote_id: str, title: str, tags: list[str]) -> None:
        self._check("update", remote_id)
        if remote_id not in self.records:
            raise NotFound(remote_id)
        self.records[remote_id]["title"] = title
        self.records[remote_id]["tags"] = list(tags)

    def delete_remote(self, remote_id: str) -> None:
        self._check("delete", remote_id)
        if self.fail_deletes:
            raise RemoteUnavailable("delete timed out")
        if remote_id not in self.records:
            raise NotFound(remote_id)
        del self.records[remote_id]


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "NOTESYNC_DB",
        "NOTESYNC_REMOTE_URL",
        "NOTESYNC_REMOTE_TIMEOUT_S",
        "NOTESYNC_SYNC_INTERVAL_S",
        "NOTESYNC_SERVE_HOST",
        "NOTESYNC_SERVE_PORT",
        "NOTESYNC_REMOTE_DB",
        "NOTESYNC_SYNC_LOG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NOTESYNC_CONFIG", str(tmp_path / "config" / "config.json"))


@pytest.fixture
def store(tmp_path: Path) -> Iterator[NoteStore]:
    note_store = NoteStore(tmp_path / "notes.sqlite")
    try:
        yield note_store
    finally:
        note_store.close()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def connectivity() -> Connectivity:
    return Connectivity(online=True)


@pytest.fixture
def engine(store: NoteStore, remote: FakeRemote, connectivity: Connectivity) -> SyncEngine:
    return build_engine(store, remote, connectivity)


class Network:
    def __init__(self, remote: FakeRemote, connectivity: Connectivity) -> None:
        self.remote = remote
        self.connectivity = connectivity

    def offline(self) -> None:
        self.remote.available = False
        self.connectivity.set_online(False)

    def online(self) -> None:
        self.remote.available = True
        self.connectivity.set_online(True)


@pytest.fixture
def network(remote: FakeRemote, connectivity: Connectivity) -> Network:
    return Network(remote, connectivity)
