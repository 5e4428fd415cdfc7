from __future__ import annotations

import json
import os
from http.server import BaseHTTPRequestHandler
from typing import Any
from urllib.parse import unquote, urlparse

from . import __version__
from .remote_store import RemoteNoteStore

MAX_BODY_BYTES = 262144
NOTES_PATH = "/v1/notes"


def _read_body(handler: BaseHTTPRequestHandler) -> bytes:
    length = int(handler.headers.get("Content-Length", "0") or 0)
    if length <= 0:
        return b""
    if length > MAX_BODY_BYTES:
        raise ValueError("payload_too_large")
    return handler.rfile.read(length)


def _parse_json_body(raw: bytes) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        data = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _send_json(handler: BaseHTTPRequestHandler, payload: dict[str, Any], status: int = 200) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _parse_tags(value: object) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise ValueError("invalid_tags")
    return list(value)


def _note_id_from_path(path: str) -> str | None:
    prefix = f"{NOTES_PATH}/"
    if not path.startswith(prefix):
        return None
    note_id = unquote(path[len(prefix) :])
    if not note_id or "/" in note_id:
        return None
    return note_id


def build_remote_handler(store: RemoteNoteStore):
    class RemoteNotesHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if os.environ.get("NOTESYNC_SERVER_LOGS") == "1":
                super().log_message(format, *args)

        def _read_json(self) -> dict[str, Any] | None:
            try:
                raw = _read_body(self)
            except ValueError:
                _send_json(self, {"error": "payload_too_large"}, status=413)
                return None
            data = _parse_json_body(raw)
            if data is None:
                _send_json(self, {"error": "invalid_json"}, status=400)
            return data

        def do_GET(self) -> None:  # noqa: N802
            path = urlparse(self.path).path
            if path == "/v1/status":
                _send_json(self, {"ok": True, "version": __version__})
                return
            if path == NOTES_PATH:
                try:
                    notes = store.list_notes()
                except Exception:
                    _send_json(self, {"error": "internal_error"}, status=500)
                    return
                _send_json(self, {"notes": notes})
                return
            note_id = _note_id_from_path(path)
            if note_id is not None:
                note = store.get(note_id)
                if note is None:
                    _send_json(self, {"error": "not_found"}, status=404)
                    return
                _send_json(self, note)
                return
            _send_json(self, {"error": "not_found"}, status=404)

        def do_POST(self) -> None:  # noqa: N802
            if urlparse(self.path).path != NOTES_PATH:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            data = self._read_json()
            if data is None:
                return
            title = data.get("title")
            if not isinstance(title, str) or not title.strip():
                _send_json(self, {"error": "missing_title"}, status=400)
                return
            try:
                tags = _parse_tags(data.get("tags")) or []
            except ValueError:
                _send_json(self, {"error": "invalid_tags"}, status=400)
                return
            local_id = data.get("local_id")
            created_at = data.get("created_at")
            try:
                note_id = store.create(
                    title=title,
                    tags=tags,
                    local_id=local_id if isinstance(local_id, str) else None,
                    created_at=created_at if isinstance(created_at, str) else None,
                )
            except Exception:
                _send_json(self, {"error": "internal_error"}, status=500)
                return
            _send_json(self, {"id": note_id}, status=201)

        def do_PUT(self) -> None:  # noqa: N802
            note_id = _note_id_from_path(urlparse(self.path).path)
            if note_id is None:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            data = self._read_json()
            if data is None:
                return
            title = data.get("title")
            if not isinstance(title, str):
                _send_json(self, {"error": "missing_title"}, status=400)
                return
            try:
                tags = _parse_tags(data.get("tags"))
            except ValueError:
                _send_json(self, {"error": "invalid_tags"}, status=400)
                return
            try:
                updated = store.update(note_id, title=title, tags=tags)
            except Exception:
                _send_json(self, {"error": "internal_error"}, status=500)
                return
            if not updated:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            _send_json(self, {"ok": True})

        def do_DELETE(self) -> None:  # noqa: N802
            note_id = _note_id_from_path(urlparse(self.path).path)
            if note_id is None:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            try:
                deleted = store.delete(note_id)
            except Exception:
                _send_json(self, {"error": "internal_error"}, status=500)
                return
            if not deleted:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            _send_json(self, {"ok": True})

    return RemoteNotesHandler
