from __future__ import annotations

import datetime as dt
import logging
import threading
import traceback
from pathlib import Path

from ..connectivity import probe_remote
from ..engine import open_engine

logger = logging.getLogger(__name__)

DEFAULT_SYNC_LOG = Path("~/.notesync/sync-daemon.log")


def run_sync_daemon(
    interval_s: int,
    *,
    remote_url: str,
    db_path: Path | str | None = None,
    timeout_s: float = 3.0,
    log_path: Path | str | None = None,
    stop_event: threading.Event | None = None,
) -> None:
    engine = open_engine(db_path, remote_url, timeout_s=timeout_s)
    reconciler = engine.reconciler
    if reconciler is None:
        engine.close()
        raise ValueError("sync daemon needs a remote url")
    stop = stop_event or threading.Event()
    sync_log = Path(log_path or DEFAULT_SYNC_LOG).expanduser()

    def _tick() -> None:
        try:
            report = reconciler.reconcile()
            if report.ok:
                engine.store.set_sync_daemon_ok()
            elif not report.skipped:
                engine.store.set_sync_daemon_error(report.error or "sync failed", "")
        except Exception as exc:
            tb = traceback.format_exc()
            logger.exception("sync daemon tick failed")
            engine.store.set_sync_daemon_error(str(exc), tb)
            _append_sync_daemon_log(sync_log, tb)

    unsubscribe = engine.connectivity.subscribe(_tick)
    try:
        _tick()
        while not stop.wait(interval_s):
            regained = engine.connectivity.set_online(probe_remote(remote_url))
            if not regained and engine.connectivity.is_online():
                _tick()
    finally:
        unsubscribe()
        engine.close()


def _append_sync_daemon_log(log_path: Path, message: str) -> None:
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        ts = dt.datetime.now(dt.UTC).isoformat()
        with log_path.open("a", encoding="utf-8", errors="ignore") as handle:
            handle.write(f"\n[{ts}]\n{message}\n")
    except OSError:
        logger.warning("could not write sync daemon log %s", log_path)
