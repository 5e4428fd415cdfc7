from __future__ import annotations

import contextlib
import datetime as dt
import json
import sqlite3
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from uuid import uuid4

from .. import db
from ..errors import StorageError
from .types import Note, RemoteNote, SyncReport


class NoteStore:
    """Durable local store of notes; the source of truth for what the user sees.

    Every write is committed before the call returns. sqlite failures surface
    as ``StorageError``.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        *,
        check_same_thread: bool = False,
    ):
        self.db_path = db.resolve_db_path(db_path)
        self._lock = threading.RLock()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except sqlite3.Error as exc:
            raise StorageError(f"failed to open note store at {self.db_path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    @staticmethod
    def new_local_id() -> str:
        return str(uuid4())

    @staticmethod
    def _now_iso() -> str:
        return dt.datetime.now(dt.UTC).isoformat()

    @contextlib.contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except sqlite3.Error as exc:
                with contextlib.suppress(sqlite3.Error):
                    self.conn.rollback()
                raise StorageError(f"{action} failed: {exc}") from exc

    @staticmethod
    def _row_to_note(row: sqlite3.Row) -> Note:
        try:
            tags = json.loads(row["tags_json"] or "[]")
        except json.JSONDecodeError:
            tags = []
        return Note(
            local_id=str(row["local_id"]),
            remote_id=row["remote_id"],
            title=str(row["title"]),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            created_at=str(row["created_at"]),
            delete_pending=bool(row["delete_pending"]),
            edit_dirty=bool(row["edit_dirty"]),
            updated_at=row["updated_at"],
        )

    def get(self, local_id: str) -> Note | None:
        with self._guard("get note") as conn:
            row = conn.execute("SELECT * FROM notes WHERE local_id = ?", (local_id,)).fetchone()
        return self._row_to_note(row) if row else None

    def get_by_remote_id(self, remote_id: str) -> Note | None:
        with self._guard("get note by remote id") as conn:
            row = conn.execute("SELECT * FROM notes WHERE remote_id = ?", (remote_id,)).fetchone()
        return self._row_to_note(row) if row else None

    def get_all(self) -> list[Note]:
        with self._guard("list notes") as conn:
            rows = conn.execute("SELECT * FROM notes").fetchall()
        return [self._row_to_note(row) for row in rows]

    def list_notes(self) -> list[Note]:
        return sorted(self.get_all(), key=lambda note: note.created_at, reverse=True)

    def put(self, note: Note) -> None:
        updated_at = self._now_iso()
        with self._guard("put note") as conn:
            conn.execute(
                """
                INSERT INTO notes(
                    local_id, remote_id, title, tags_json, created_at, updated_at,
                    delete_pending, edit_dirty
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(local_id) DO UPDATE SET
                    remote_id = excluded.remote_id,
                    title = excluded.title,
                    tags_json = excluded.tags_json,
                    updated_at = excluded.updated_at,
                    delete_pending = excluded.delete_pending,
                    edit_dirty = excluded.edit_dirty
                """,
                (
                    note.local_id,
                    note.remote_id,
                    note.title,
                    json.dumps(list(note.tags), ensure_ascii=False),
                    note.created_at,
                    updated_at,
                    int(note.delete_pending),
                    int(note.edit_dirty),
                ),
            )
        note.updated_at = updated_at

    def remove(self, local_id: str) -> None:
        with self._guard("remove note") as conn:
            conn.execute("DELETE FROM notes WHERE local_id = ?", (local_id,))

    def note_counts(self) -> dict[str, int]:
        with self._guard("count notes") as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN remote_id IS NULL THEN 1 ELSE 0 END) AS unsynced,
                    SUM(edit_dirty) AS dirty,
                    SUM(delete_pending) AS delete_pending
                FROM notes
                """
            ).fetchone()
        return {key: int(row[key] or 0) for key in ("total", "unsynced", "dirty", "delete_pending")}

    def record_conflict(self, note: Note, remote: RemoteNote, *, resolution: str) -> None:
        with self._guard("record conflict") as conn:
            conn.execute(
                """
                INSERT INTO sync_conflicts(
                    local_id, remote_id, local_title, local_tags_json,
                    remote_title, remote_tags_json, resolution, detected_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note.local_id,
                    remote["remote_id"],
                    note.title,
                    json.dumps(list(note.tags), ensure_ascii=False),
                    remote["title"],
                    json.dumps(list(remote["tags"]), ensure_ascii=False),
                    resolution,
                    self._now_iso(),
                ),
            )

    def list_conflicts(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._guard("list conflicts") as conn:
            rows = conn.execute(
                """
                SELECT local_id, remote_id, local_title, local_tags_json,
                       remote_title, remote_tags_json, resolution, detected_at
                FROM sync_conflicts
                ORDER BY detected_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            {
                "local_id": row["local_id"],
                "remote_id": row["remote_id"],
                "local_title": row["local_title"],
                "local_tags": json.loads(row["local_tags_json"] or "[]"),
                "remote_title": row["remote_title"],
                "remote_tags": json.loads(row["remote_tags_json"] or "[]"),
                "resolution": row["resolution"],
                "detected_at": row["detected_at"],
            }
            for row in rows
        ]

    def record_sync_attempt(self, report: SyncReport, *, started_at: str) -> None:
        with self._guard("record sync attempt") as conn:
            conn.execute(
                """
                INSERT INTO sync_attempts(
                    started_at, finished_at, ok, error, ops_in, ops_out, conflicts
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    started_at,
                    self._now_iso(),
                    1 if report.ok else 0,
                    report.error,
                    report.ops_in,
                    report.ops_out,
                    report.conflicts,
                ),
            )

    def list_sync_attempts(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._guard("list sync attempts") as conn:
            rows = conn.execute(
                """
                SELECT started_at, finished_at, ok, error, ops_in, ops_out, conflicts
                FROM sync_attempts
                ORDER BY started_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_sync_daemon_state(self) -> dict[str, Any] | None:
        with self._guard("read sync daemon state") as conn:
            row = conn.execute(
                "SELECT last_error, last_traceback, last_error_at, last_ok_at"
                " FROM sync_daemon_state WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        return {
            "last_error": row["last_error"],
            "last_traceback": row["last_traceback"],
            "last_error_at": row["last_error_at"],
            "last_ok_at": row["last_ok_at"],
        }

    def set_sync_daemon_error(self, error: str, traceback_text: str) -> None:
        now = self._now_iso()
        with self._guard("write sync daemon state") as conn:
            conn.execute(
                """
                INSERT INTO sync_daemon_state(id, last_error, last_traceback, last_error_at)
                VALUES (1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    last_error = excluded.last_error,
                    last_traceback = excluded.last_traceback,
                    last_error_at = excluded.last_error_at
                """,
                (error, traceback_text, now),
            )

    def set_sync_daemon_ok(self) -> None:
        now = self._now_iso()
        with self._guard("write sync daemon state") as conn:
            conn.execute(
                """
                INSERT INTO sync_daemon_state(id, last_ok_at)
                VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET
                    last_ok_at = excluded.last_ok_at
                """,
                (now,),
            )
