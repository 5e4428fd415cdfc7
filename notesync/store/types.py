from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, NotRequired, TypedDict


@dataclass
class Note:
    local_id: str
    title: str
    created_at: str
    tags: list[str] = field(default_factory=list)
    remote_id: str | None = None
    delete_pending: bool = False
    edit_dirty: bool = False
    updated_at: str | None = field(default=None, compare=False)

    @property
    def synced(self) -> bool:
        return self.remote_id is not None

    def content_differs(self, remote: RemoteNote) -> bool:
        return self.title != remote["title"] or list(self.tags) != list(remote["tags"])

    def changed_since(self, timestamp: str) -> bool:
        return self.updated_at is not None and self.updated_at > timestamp

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class RemoteNote(TypedDict):
    remote_id: str
    title: str
    tags: list[str]
    created_at: str
    local_id: NotRequired[str | None]


@dataclass
class SyncReport:
    ok: bool = True
    skipped: bool = False
    error: str | None = None
    created_remote: int = 0
    adopted_remote: int = 0
    updated_remote: int = 0
    deleted_remote: int = 0
    created_local: int = 0
    updated_local: int = 0
    removed_local: int = 0
    conflicts: int = 0
    failures: list[dict[str, str]] = field(default_factory=list)

    @property
    def ops_out(self) -> int:
        return self.created_remote + self.updated_remote + self.deleted_remote

    @property
    def ops_in(self) -> int:
        return self.created_local + self.updated_local + self.removed_local

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["ops_in"] = self.ops_in
        payload["ops_out"] = self.ops_out
        return payload
