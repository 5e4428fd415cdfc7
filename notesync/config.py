from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/notesync/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "NOTESYNC_DB",
    "remote_url": "NOTESYNC_REMOTE_URL",
    "remote_timeout_s": "NOTESYNC_REMOTE_TIMEOUT_S",
    "sync_interval_s": "NOTESYNC_SYNC_INTERVAL_S",
    "serve_host": "NOTESYNC_SERVE_HOST",
    "serve_port": "NOTESYNC_SERVE_PORT",
    "remote_db_path": "NOTESYNC_REMOTE_DB",
    "sync_log": "NOTESYNC_SYNC_LOG",
}

INT_KEYS = {"sync_interval_s", "serve_port"}
FLOAT_KEYS = {"remote_timeout_s"}
OPTIONAL_PATH_KEYS = {"db_path", "remote_url", "remote_db_path"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("NOTESYNC_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class NotesyncConfig:
    db_path: str | None = None
    remote_url: str | None = None
    remote_timeout_s: float = 3.0
    sync_interval_s: int = 60
    serve_host: str = "127.0.0.1"
    serve_port: int = 7338
    remote_db_path: str | None = None
    sync_log: str = "~/.notesync/sync-daemon.log"


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_value(cfg: NotesyncConfig, key: str, value: object) -> object:
    if key in INT_KEYS:
        return _parse_int(value, getattr(cfg, key), key=key)
    if key in FLOAT_KEYS:
        return _parse_float(value, getattr(cfg, key), key=key)
    if isinstance(value, str):
        value = value.strip()
        if not value and key in OPTIONAL_PATH_KEYS:
            return None
        return value
    if value is None and key in OPTIONAL_PATH_KEYS:
        return None
    warnings.warn(f"Invalid value for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return getattr(cfg, key)


def load_config(path: Path | None = None) -> NotesyncConfig:
    cfg = NotesyncConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text() or "{}")
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: NotesyncConfig, data: dict[str, Any]) -> NotesyncConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        setattr(cfg, key, _coerce_value(cfg, key, value))
    return cfg


def _apply_env(cfg: NotesyncConfig) -> NotesyncConfig:
    for key, value in get_env_overrides().items():
        setattr(cfg, key, _coerce_value(cfg, key, value))
    return cfg
