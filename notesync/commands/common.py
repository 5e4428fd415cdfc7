from __future__ import annotations

from typing import Any

import typer
from rich import print
from rich.markup import escape

from notesync.config import load_config, read_config_file, write_config_file
from notesync.engine import SyncEngine, open_engine
from notesync.errors import StorageError
from notesync.store import Note, NoteStore


def store_from_path(db_path: str | None) -> NoteStore:
    try:
        return NoteStore(db_path or load_config().db_path)
    except StorageError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def engine_from_options(db_path: str | None, remote_url: str | None) -> SyncEngine:
    config = load_config()
    try:
        return open_engine(
            db_path or config.db_path,
            remote_url or config.remote_url,
            timeout_s=config.remote_timeout_s,
        )
    except StorageError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def sync_state_label(note: Note) -> str:
    if note.delete_pending:
        return "pending delete"
    if note.remote_id is None:
        return "local only"
    if note.edit_dirty:
        return "edit pending"
    return "synced"


def format_note_line(note: Note) -> str:
    tags = f" [{', '.join(note.tags)}]" if note.tags else ""
    return escape(f"{note.local_id}  ({sync_state_label(note)}) {note.title}{tags}")
