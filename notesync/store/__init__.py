from __future__ import annotations

from ._store import NoteStore
from .types import Note, RemoteNote, SyncReport
from .validation import normalize_tags, normalize_title

__all__ = [
    "Note",
    "NoteStore",
    "RemoteNote",
    "SyncReport",
    "normalize_tags",
    "normalize_title",
]
