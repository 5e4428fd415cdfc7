from __future__ import annotations

import logging
from http.client import HTTPException
from typing import Any, Protocol
from urllib.parse import quote

from ..errors import NotFound, RemoteUnavailable, ValidationError
from ..store.types import RemoteNote
from . import http_client

logger = logging.getLogger(__name__)


class RemoteGateway(Protocol):
    def create_remote(
        self, title: str, tags: list[str], local_id: str, created_at: str
    ) -> str: ...

    def read_all_remote(self) -> list[RemoteNote]: ...

    def update_remote(self, remote_id: str, title: str, tags: list[str]) -> None: ...

    def delete_remote(self, remote_id: str) -> None: ...


def _error_detail(payload: dict[str, Any] | None) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    return error if isinstance(error, str) else None


def parse_remote_note(item: object) -> RemoteNote | None:
    if not isinstance(item, dict):
        return None
    remote_id = item.get("id")
    title = item.get("title")
    if not isinstance(remote_id, str) or not remote_id or not isinstance(title, str):
        return None
    tags = item.get("tags")
    local_id = item.get("local_id")
    return {
        "remote_id": remote_id,
        "title": title,
        "tags": [str(tag) for tag in tags] if isinstance(tags, list) else [],
        "created_at": str(item.get("created_at") or ""),
        "local_id": local_id if isinstance(local_id, str) and local_id else None,
    }


class HttpRemoteGateway:
    """Talks to a notes collection served at ``{base_url}/v1/notes``."""

    def __init__(self, base_url: str, *, timeout_s: float = 3.0) -> None:
        self.base_url = http_client.build_base_url(base_url)
        if not self.base_url:
            raise ValueError("remote url is empty")
        self.timeout_s = timeout_s

    def _request(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> tuple[int, dict[str, Any] | None]:
        url = f"{self.base_url}{path}"
        try:
            status, payload = http_client.request_json(
                method, url, body=body, timeout_s=self.timeout_s
            )
        except (OSError, HTTPException, ValueError) as exc:
            raise RemoteUnavailable(f"{method} {path}: {exc}") from exc
        if status >= 500:
            detail = _error_detail(payload)
            suffix = f" ({status}: {detail})" if detail else f" ({status})"
            raise RemoteUnavailable(f"{method} {path} failed{suffix}")
        return status, payload

    def _raise_for_status(
        self, method: str, path: str, status: int, payload: dict[str, Any] | None
    ) -> None:
        if 200 <= status < 300:
            return
        detail = _error_detail(payload) or str(status)
        if status == 404:
            raise NotFound(f"{method} {path}: {detail}")
        if status in {400, 422}:
            raise ValidationError(f"{method} {path}: {detail}")
        raise RemoteUnavailable(f"{method} {path} failed ({status}: {detail})")

    def create_remote(self, title: str, tags: list[str], local_id: str, created_at: str) -> str:
        body = {"title": title, "tags": list(tags), "local_id": local_id, "created_at": created_at}
        status, payload = self._request("POST", "/v1/notes", body)
        self._raise_for_status("POST", "/v1/notes", status, payload)
        remote_id = payload.get("id") if payload else None
        if not isinstance(remote_id, str) or not remote_id:
            raise RemoteUnavailable("create response missing id")
        return remote_id

    def read_all_remote(self) -> list[RemoteNote]:
        status, payload = self._request("GET", "/v1/notes")
        self._raise_for_status("GET", "/v1/notes", status, payload)
        items = payload.get("notes") if payload else None
        if not isinstance(items, list):
            raise RemoteUnavailable("invalid notes response")
        notes: list[RemoteNote] = []
        for item in items:
            parsed = parse_remote_note(item)
            if parsed is None:
                logger.warning("skipping malformed remote note: %r", item)
                continue
            notes.append(parsed)
        return notes

    def update_remote(self, remote_id: str, title: str, tags: list[str]) -> None:
        path = f"/v1/notes/{quote(remote_id, safe='')}"
        status, payload = self._request("PUT", path, {"title": title, "tags": list(tags)})
        self._raise_for_status("PUT", path, status, payload)

    def delete_remote(self, remote_id: str) -> None:
        path = f"/v1/notes/{quote(remote_id, safe='')}"
        status, payload = self._request("DELETE", path)
        self._raise_for_status("DELETE", path, status, payload)

    def status(self) -> dict[str, Any]:
        status, payload = self._request("GET", "/v1/status")
        self._raise_for_status("GET", "/v1/status", status, payload)
        return payload or {}
