from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Callable
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

Listener = Callable[[], object]


class Connectivity:
    """Explicit online/offline state.

    Listeners run on the thread that reports the offline to online transition.
    """

    def __init__(self, online: bool = False) -> None:
        self._online = online
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def set_online(self, online: bool) -> bool:
        """Update the state; returns True when this call brought us back online."""

        with self._lock:
            regained = online and not self._online
            self._online = online
            listeners = list(self._listeners) if regained else []
        if regained:
            logger.info("connectivity regained")
        for listener in listeners:
            listener()
        return regained

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def probe_remote(url: str | None, *, timeout_s: float = 0.5) -> bool:
    if not url:
        return False
    parsed = urlparse(url if "://" in url else f"http://{url}")
    host = parsed.hostname
    if not host:
        return False
    port = parsed.port or _default_port(parsed.scheme)
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except OSError:
        return False
    for family, socktype, proto, _canon, address in infos:
        try:
            with socket.socket(family, socktype, proto) as sock:
                sock.settimeout(timeout_s)
                if sock.connect_ex(address) == 0:
                    return True
        except OSError:
            continue
    return False
