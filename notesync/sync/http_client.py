from __future__ import annotations

import json
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlsplit

JsonResponse = tuple[int, dict[str, Any] | None]

ERROR_SNIPPET_BYTES = 240


def build_base_url(address: str) -> str:
    base = address.strip().rstrip("/")
    if base and "://" not in base:
        base = f"http://{base}"
    return base


def _open(url: str, timeout_s: float) -> tuple[HTTPConnection, str]:
    parts = urlsplit(url)
    if not parts.hostname:
        raise ValueError(f"missing hostname in {url!r}")
    conn_cls = HTTPSConnection if parts.scheme == "https" else HTTPConnection
    target = parts.path or "/"
    if parts.query:
        target = f"{target}?{parts.query}"
    return conn_cls(parts.hostname, parts.port, timeout=timeout_s), target


def decode_payload(raw: bytes) -> dict[str, Any] | None:
    """Parse a response body; anything other than a JSON object becomes an ``error`` entry."""

    if not raw:
        return None
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        snippet = raw[:ERROR_SNIPPET_BYTES].decode("utf-8", errors="replace").strip()
        return {"error": f"non_json_response: {snippet}" if snippet else "non_json_response"}
    if isinstance(data, dict):
        return data
    return {"error": f"unexpected_json_type: {type(data).__name__}"}


def request_json(
    method: str,
    url: str,
    *,
    body: dict[str, Any] | None = None,
    timeout_s: float = 3.0,
) -> JsonResponse:
    conn, target = _open(url, timeout_s)
    headers = {"Accept": "application/json"}
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json"
        headers["Content-Length"] = str(len(data))
    try:
        conn.request(method, target, body=data, headers=headers)
        resp = conn.getresponse()
        return int(resp.status), decode_payload(resp.read())
    finally:
        conn.close()
