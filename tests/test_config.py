import json
from pathlib import Path

import pytest

from notesync.config import (
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    write_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_missing_or_blank_is_empty(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    blank = tmp_path / "blank.json"
    blank.write_text("  \n")
    assert read_config_file(blank) == {}


def test_write_config_file_creates_parent_dirs(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.json"

    written = write_config_file({"remote_url": "http://127.0.0.1:7338"}, config_path)

    assert written == config_path
    assert json.loads(config_path.read_text()) == {"remote_url": "http://127.0.0.1:7338"}


def test_get_config_path_uses_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NOTESYNC_CONFIG", str(tmp_path / "alt.json"))
    assert get_config_path() == tmp_path / "alt.json"


def test_load_config_defaults() -> None:
    cfg = load_config()

    assert cfg.remote_url is None
    assert cfg.remote_timeout_s == 3.0
    assert cfg.sync_interval_s == 60
    assert cfg.serve_port == 7338


def test_load_config_reads_file_and_env_wins(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "remote_url": "http://10.0.0.2:7338",
                "sync_interval_s": 30,
                "remote_timeout_s": 1.5,
                "unknown_key": "ignored",
            }
        )
    )
    monkeypatch.setenv("NOTESYNC_SYNC_INTERVAL_S", "15")

    cfg = load_config(config_path)

    assert cfg.remote_url == "http://10.0.0.2:7338"
    assert cfg.sync_interval_s == 15
    assert cfg.remote_timeout_s == 1.5
    assert not hasattr(cfg, "unknown_key")


def test_load_config_tolerates_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{broken")

    assert load_config(config_path).sync_interval_s == 60


def test_invalid_int_env_warns_and_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTESYNC_SERVE_PORT", "not-a-port")

    with pytest.warns(RuntimeWarning, match="serve_port"):
        cfg = load_config()

    assert cfg.serve_port == 7338


def test_blank_remote_url_env_clears_value(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"remote_url": "http://10.0.0.2:7338"}))
    monkeypatch.setenv("NOTESYNC_REMOTE_URL", "  ")

    assert load_config(config_path).remote_url is None


def test_get_env_overrides_only_reports_set_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTESYNC_REMOTE_URL", "http://127.0.0.1:7338")

    assert get_env_overrides() == {"remote_url": "http://127.0.0.1:7338"}
