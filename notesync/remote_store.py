from __future__ import annotations

import datetime as dt
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any
from uuid import uuid4

from . import db


class RemoteNoteStore:
    """Server-side notes collection keyed by an opaque server-assigned id."""

    def __init__(self, db_path: Path | str = db.DEFAULT_REMOTE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser()
        self._lock = threading.Lock()
        self.conn = db.connect(self.db_path, check_same_thread=False)
        db.initialize_remote_schema(self.conn)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    @staticmethod
    def _now_iso() -> str:
        return dt.datetime.now(dt.UTC).isoformat()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "local_id": row["local_id"],
            "title": row["title"],
            "tags": json.loads(row["tags_json"] or "[]"),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def list_notes(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM remote_notes ORDER BY created_at DESC"
            ).fetchall()
        return [self._row_to_dict(row) for row in rows]

    def get(self, note_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM remote_notes WHERE id = ?", (note_id,)
            ).fetchone()
        return self._row_to_dict(row) if row else None

    def create(
        self,
        *,
        title: str,
        tags: list[str],
        local_id: str | None,
        created_at: str | None,
    ) -> str:
        note_id = uuid4().hex
        now = self._now_iso()
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO remote_notes(id, local_id, title, tags_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    note_id,
                    local_id,
                    title,
                    json.dumps(tags, ensure_ascii=False),
                    created_at or now,
                    now,
                ),
            )
            self.conn.commit()
        return note_id

    def update(self, note_id: str, *, title: str, tags: list[str] | None) -> bool:
        with self._lock:
            if tags is None:
                cur = self.conn.execute(
                    "UPDATE remote_notes SET title = ?, updated_at = ? WHERE id = ?",
                    (title, self._now_iso(), note_id),
                )
            else:
                cur = self.conn.execute(
                    "UPDATE remote_notes SET title = ?, tags_json = ?, updated_at = ? WHERE id = ?",
                    (title, json.dumps(tags, ensure_ascii=False), self._now_iso(), note_id),
                )
            self.conn.commit()
        return cur.rowcount > 0

    def delete(self, note_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM remote_notes WHERE id = ?", (note_id,))
            self.conn.commit()
        return cur.rowcount > 0
