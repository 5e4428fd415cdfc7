from __future__ import annotations

import contextlib
import socket
import threading
from http.server import ThreadingHTTPServer
from pathlib import Path

from . import db
from .remote_api import build_remote_handler
from .remote_store import RemoteNoteStore


class RemoteServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], store: RemoteNoteStore) -> None:
        host = address[0]
        self.address_family = socket.AF_INET6 if ":" in host else socket.AF_INET
        self.store = store
        super().__init__(address, build_remote_handler(store))

    def server_bind(self) -> None:
        if self.address_family == socket.AF_INET6:
            with contextlib.suppress(OSError):
                self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()


def start_remote_server(
    host: str,
    port: int,
    *,
    db_path: Path | str | None = None,
) -> tuple[RemoteServer, threading.Thread]:
    store = RemoteNoteStore(db_path or db.DEFAULT_REMOTE_DB_PATH)
    server = RemoteServer((host, port), store)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


def stop_remote_server(server: RemoteServer) -> None:
    server.shutdown()
    server.server_close()
    server.store.close()


def serve_forever(host: str, port: int, *, db_path: Path | str | None = None) -> None:
    server, thread = start_remote_server(host, port, db_path=db_path)
    try:
        thread.join()
    finally:
        stop_remote_server(server)
