from __future__ import annotations

import os
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = Path.home() / ".notesync.sqlite"
DEFAULT_REMOTE_DB_PATH = Path.home() / ".notesync-remote.sqlite"


def resolve_db_path(db_path: Path | str | None = None) -> Path:
    value = db_path or os.environ.get("NOTESYNC_DB") or DEFAULT_DB_PATH
    return Path(value).expanduser()


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS notes (
            local_id TEXT PRIMARY KEY,
            remote_id TEXT,
            title TEXT NOT NULL,
            tags_json TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            delete_pending INTEGER NOT NULL DEFAULT 0,
            edit_dirty INTEGER NOT NULL DEFAULT 0
        );
        CREATE UNIQUE INDEX IF NOT EXISTS idx_notes_remote_id
            ON notes(remote_id) WHERE remote_id IS NOT NULL;
        CREATE INDEX IF NOT EXISTS idx_notes_created ON notes(created_at DESC);

        CREATE TABLE IF NOT EXISTS sync_attempts (
            id INTEGER PRIMARY KEY,
            started_at TEXT NOT NULL,
            finished_at TEXT,
            ok INTEGER NOT NULL,
            error TEXT,
            ops_in INTEGER DEFAULT 0,
            ops_out INTEGER DEFAULT 0,
            conflicts INTEGER DEFAULT 0
        );
        CREATE INDEX IF NOT EXISTS idx_sync_attempts_started ON sync_attempts(started_at DESC);

        CREATE TABLE IF NOT EXISTS sync_conflicts (
            id INTEGER PRIMARY KEY,
            local_id TEXT NOT NULL,
            remote_id TEXT NOT NULL,
            local_title TEXT NOT NULL,
            local_tags_json TEXT NOT NULL,
            remote_title TEXT NOT NULL,
            remote_tags_json TEXT NOT NULL,
            resolution TEXT NOT NULL,
            detected_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_sync_conflicts_detected ON sync_conflicts(detected_at DESC);

        CREATE TABLE IF NOT EXISTS sync_daemon_state (
            id INTEGER PRIMARY KEY,
            last_error TEXT,
            last_traceback TEXT,
            last_error_at TEXT,
            last_ok_at TEXT
        );
        """
    )
    conn.commit()


def initialize_remote_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS remote_notes (
            id TEXT PRIMARY KEY,
            local_id TEXT,
            title TEXT NOT NULL,
            tags_json TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_remote_notes_created ON remote_notes(created_at DESC);
        """
    )
    conn.commit()
