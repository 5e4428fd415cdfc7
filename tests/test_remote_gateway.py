from __future__ import annotations

import socket
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path

import pytest

from notesync.connectivity import Connectivity, probe_remote
from notesync.engine import build_engine
from notesync.errors import NotFound, RemoteUnavailable, ValidationError
from notesync.server import RemoteServer, start_remote_server, stop_remote_server
from notesync.store import NoteStore
from notesync.sync import gateway as gateway_module
from notesync.sync.gateway import HttpRemoteGateway


@pytest.fixture
def server(tmp_path: Path) -> Iterator[RemoteServer]:
    srv, _thread = start_remote_server("127.0.0.1", 0, db_path=tmp_path / "remote.sqlite")
    try:
        yield srv
    finally:
        stop_remote_server(srv)


@pytest.fixture
def gateway(server: RemoteServer) -> HttpRemoteGateway:
    return HttpRemoteGateway(f"127.0.0.1:{server.server_address[1]}", timeout_s=2.0)


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def test_crud_roundtrip_against_server(gateway: HttpRemoteGateway) -> None:
    remote_id = gateway.create_remote(
        "Buy milk", ["errand"], "local-1", "2026-01-01T00:00:00+00:00"
    )

    listing = gateway.read_all_remote()
    assert listing == [
        {
            "remote_id": remote_id,
            "title": "Buy milk",
            "tags": ["errand"],
            "created_at": "2026-01-01T00:00:00+00:00",
            "local_id": "local-1",
        }
    ]

    gateway.update_remote(remote_id, "Buy milk and eggs", ["errand", "food"])
    assert gateway.read_all_remote()[0]["title"] == "Buy milk and eggs"

    gateway.delete_remote(remote_id)
    assert gateway.read_all_remote() == []


def test_status_endpoint(gateway: HttpRemoteGateway) -> None:
    assert gateway.status()["ok"] is True


def test_missing_ids_raise_not_found(gateway: HttpRemoteGateway) -> None:
    with pytest.raises(NotFound):
        gateway.update_remote("nope", "title", [])
    with pytest.raises(NotFound):
        gateway.delete_remote("nope")


def test_empty_title_raises_validation_error(gateway: HttpRemoteGateway) -> None:
    with pytest.raises(ValidationError):
        gateway.create_remote("  ", [], "local-1", "2026-01-01T00:00:00+00:00")


def test_unreachable_remote_raises_remote_unavailable() -> None:
    gateway = HttpRemoteGateway(f"http://127.0.0.1:{_unused_port()}", timeout_s=0.5)

    with pytest.raises(RemoteUnavailable):
        gateway.read_all_remote()


def test_server_errors_map_to_remote_unavailable(monkeypatch) -> None:
    monkeypatch.setattr(
        gateway_module.http_client,
        "request_json",
        lambda *a, **k: (503, {"error": "maintenance"}),
    )
    gateway = HttpRemoteGateway("http://127.0.0.1:1")

    with pytest.raises(RemoteUnavailable, match="503: maintenance"):
        gateway.update_remote("r1", "title", [])


def test_malformed_listing_entries_are_skipped(monkeypatch) -> None:
    monkeypatch.setattr(
        gateway_module.http_client,
        "request_json",
        lambda *a, **k: (200, {"notes": [{"id": "r1", "title": "ok"}, {"title": "no id"}, 7]}),
    )
    gateway = HttpRemoteGateway("http://127.0.0.1:1")

    listing = gateway.read_all_remote()

    assert [item["remote_id"] for item in listing] == ["r1"]
    assert listing[0]["tags"] == []
    assert listing[0]["local_id"] is None


def test_probe_remote(server: RemoteServer) -> None:
    assert probe_remote(f"http://127.0.0.1:{server.server_address[1]}") is True
    assert probe_remote(f"http://127.0.0.1:{_unused_port()}") is False
    assert probe_remote(None) is False


def test_two_clients_converge_through_server(tmp_path: Path, gateway: HttpRemoteGateway) -> None:
    store_a = NoteStore(tmp_path / "a.sqlite")
    store_b = NoteStore(tmp_path / "b.sqlite")
    try:
        net_a = Connectivity(online=False)
        client_a = build_engine(store_a, gateway, net_a)
        client_b = build_engine(store_b, gateway, Connectivity(online=True))
        assert client_a.reconciler is not None
        assert client_b.reconciler is not None

        note_a = client_a.lifecycle.create("Buy milk", ["errand"])
        net_a.set_online(True)
        client_a.reconciler.reconcile()
        client_b.reconciler.reconcile()

        notes_b = store_b.get_all()
        assert [(n.title, n.tags) for n in notes_b] == [("Buy milk", ["errand"])]

        client_b.lifecycle.edit(notes_b[0].local_id, "Buy milk and eggs", ["errand"])
        client_a.reconciler.reconcile()
        stored_a = store_a.get(note_a.local_id)
        assert stored_a is not None
        assert stored_a.title == "Buy milk and eggs"

        client_a.lifecycle.delete(note_a.local_id)
        client_b.reconciler.reconcile()
        assert store_a.get_all() == []
        assert store_b.get_all() == []
    finally:
        store_a.close()
        store_b.close()


class _GarbledHandler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:  # noqa: A003
        return None

    def _garbled(self) -> None:
        length = int(self.headers.get("Content-Length", "0") or 0)
        if length:
            self.rfile.read(length)
        body = b"\xff\xfe not utf8"
        self.send_response(502)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    do_GET = do_POST = do_PUT = do_DELETE = _garbled  # noqa: N815


@pytest.fixture
def garbled_url() -> Iterator[str]:
    server = HTTPServer(("127.0.0.1", 0), _GarbledHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def test_undecodable_response_maps_to_remote_unavailable(garbled_url: str) -> None:
    gateway = HttpRemoteGateway(garbled_url, timeout_s=2.0)

    with pytest.raises(RemoteUnavailable, match="502"):
        gateway.create_remote("Buy milk", [], "local-1", "2026-01-01T00:00:00+00:00")
    with pytest.raises(RemoteUnavailable):
        gateway.read_all_remote()


def test_create_keeps_note_local_when_remote_answers_garbage(
    tmp_path: Path, garbled_url: str
) -> None:
    store = NoteStore(tmp_path / "notes.sqlite")
    try:
        engine = build_engine(
            store, HttpRemoteGateway(garbled_url, timeout_s=2.0), Connectivity(online=True)
        )

        note = engine.lifecycle.create("Buy milk", [])

        stored = store.get(note.local_id)
        assert stored is not None
        assert stored.remote_id is None
    finally:
        store.close()


def test_url_without_host_maps_to_remote_unavailable() -> None:
    gateway = HttpRemoteGateway("http://:7338")

    with pytest.raises(RemoteUnavailable, match="missing hostname"):
        gateway.read_all_remote()
