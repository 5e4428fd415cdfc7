from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from ..errors import StorageError, ValidationError
from .common import format_note_line, sync_state_label


def add_cmd(
    *,
    engine_from_options,
    db_path: str | None,
    remote_url: str | None,
    title: str,
    tags: list[str] | None,
) -> None:
    """Create a note locally, pushing it when the remote is reachable."""

    engine = engine_from_options(db_path, remote_url)
    try:
        note = engine.lifecycle.create(title, tags)
    except (ValidationError, StorageError) as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.close()
    print(f"Stored note {note.local_id} ({sync_state_label(note)})")


def edit_cmd(
    *,
    engine_from_options,
    db_path: str | None,
    remote_url: str | None,
    local_id: str,
    title: str | None,
    tags: list[str] | None,
    clear_tags: bool = False,
) -> None:
    """Edit the title and/or tags of a note."""

    engine = engine_from_options(db_path, remote_url)
    try:
        current = engine.store.get(local_id)
        if current is None:
            print(f"[red]Note {local_id} not found[/red]")
            raise typer.Exit(code=1)
        note = engine.lifecycle.edit(
            local_id,
            title if title is not None else current.title,
            [] if clear_tags else (tags or current.tags),
        )
    except (ValidationError, StorageError) as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.close()
    if note is not None:
        print(f"Updated note {local_id} ({sync_state_label(note)})")


def remove_cmd(
    *, engine_from_options, db_path: str | None, remote_url: str | None, local_id: str
) -> None:
    """Delete a note, or mark it pending delete while the remote is unreachable."""

    engine = engine_from_options(db_path, remote_url)
    try:
        exists = engine.store.get(local_id) is not None
        removed = engine.lifecycle.delete(local_id) if exists else False
    except StorageError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.close()
    if not exists:
        print(f"[yellow]Note {local_id} not found[/yellow]")
    elif removed:
        print(f"Deleted note {local_id}")
    else:
        print(f"[yellow]Note {local_id} marked pending delete[/yellow]")


def list_cmd(*, store_from_path, db_path: str | None, limit: int) -> None:
    """List notes, newest first."""

    store = store_from_path(db_path)
    try:
        notes = store.list_notes()
    finally:
        store.close()
    if not notes:
        print("No notes")
        return
    for note in notes[:limit]:
        print(format_note_line(note))


def show_cmd(*, store_from_path, db_path: str | None, local_id: str) -> None:
    """Print a note as JSON."""

    store = store_from_path(db_path)
    try:
        note = store.get(local_id)
    finally:
        store.close()
    if note is None:
        print(f"[red]Note {local_id} not found[/red]")
        raise typer.Exit(code=1)
    print(escape(json.dumps(note.as_dict(), indent=2, ensure_ascii=False)))
