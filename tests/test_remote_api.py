from __future__ import annotations

import io
import threading
from collections.abc import Iterator
from http.client import HTTPConnection
from http.server import HTTPServer
from pathlib import Path

import pytest

from notesync.remote_api import MAX_BODY_BYTES, _read_body, build_remote_handler
from notesync.remote_store import RemoteNoteStore
from notesync.sync.http_client import request_json


@pytest.fixture
def base_url(tmp_path: Path) -> Iterator[str]:
    store = RemoteNoteStore(tmp_path / "remote.sqlite")
    server = HTTPServer(("127.0.0.1", 0), build_remote_handler(store))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        store.close()


def _post_raw(base_url: str, raw: bytes) -> int:
    host, port = base_url.removeprefix("http://").split(":")
    conn = HTTPConnection(host, int(port), timeout=2)
    try:
        conn.request(
            "POST",
            "/v1/notes",
            body=raw,
            headers={
                "Content-Type": "application/json",
                "Content-Length": str(len(raw)),
            },
        )
        resp = conn.getresponse()
        resp.read()
        return resp.status
    finally:
        conn.close()


def test_status(base_url: str) -> None:
    status, payload = request_json("GET", f"{base_url}/v1/status")
    assert status == 200
    assert payload is not None
    assert payload["ok"] is True


def test_create_get_and_list_newest_first(base_url: str) -> None:
    first = request_json(
        "POST",
        f"{base_url}/v1/notes",
        body={"title": "older", "created_at": "2026-01-01T00:00:00+00:00"},
    )
    second = request_json(
        "POST",
        f"{base_url}/v1/notes",
        body={"title": "newer", "tags": ["a"], "created_at": "2026-02-01T00:00:00+00:00"},
    )
    assert first[0] == 201
    assert second[0] == 201
    assert second[1] is not None

    status, note = request_json("GET", f"{base_url}/v1/notes/{second[1]['id']}")
    assert status == 200
    assert note is not None
    assert (note["title"], note["tags"], note["local_id"]) == ("newer", ["a"], None)

    status, payload = request_json("GET", f"{base_url}/v1/notes")
    assert status == 200
    assert payload is not None
    assert [item["title"] for item in payload["notes"]] == ["newer", "older"]


def test_create_rejects_bad_payloads(base_url: str) -> None:
    status, payload = request_json("POST", f"{base_url}/v1/notes", body={"tags": []})
    assert (status, payload) == (400, {"error": "missing_title"})

    status, payload = request_json(
        "POST", f"{base_url}/v1/notes", body={"title": "x", "tags": "errand"}
    )
    assert (status, payload) == (400, {"error": "invalid_tags"})

    assert _post_raw(base_url, b"{not json") == 400


def test_update_keeps_tags_when_omitted(base_url: str) -> None:
    _status, created = request_json(
        "POST", f"{base_url}/v1/notes", body={"title": "draft", "tags": ["keep"]}
    )
    assert created is not None
    note_url = f"{base_url}/v1/notes/{created['id']}"

    status, _payload = request_json("PUT", note_url, body={"title": "final"})

    assert status == 200
    _status, note = request_json("GET", note_url)
    assert note is not None
    assert (note["title"], note["tags"]) == ("final", ["keep"])


def test_unknown_ids_and_paths_return_404(base_url: str) -> None:
    assert request_json("PUT", f"{base_url}/v1/notes/missing", body={"title": "x"})[0] == 404
    assert request_json("DELETE", f"{base_url}/v1/notes/missing")[0] == 404
    assert request_json("GET", f"{base_url}/v1/notes/missing")[0] == 404
    assert request_json("GET", f"{base_url}/v1/other")[0] == 404


class _FakeHandler:
    def __init__(self, length: int) -> None:
        self.headers = {"Content-Length": str(length)}
        self.rfile = io.BytesIO(b"{}")


def test_read_body_rejects_oversized_payloads() -> None:
    with pytest.raises(ValueError, match="payload_too_large"):
        _read_body(_FakeHandler(MAX_BODY_BYTES + 1))  # type: ignore[arg-type]
    assert _read_body(_FakeHandler(2)) == b"{}"  # type: ignore[arg-type]
    assert _read_body(_FakeHandler(0)) == b""  # type: ignore[arg-type]
