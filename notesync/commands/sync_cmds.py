from __future__ import annotations

import json
import threading

import typer
from rich import print
from rich.markup import escape

from ..errors import StorageError

NO_REMOTE_MESSAGE = (
    "[yellow]No remote configured; use --remote-url or `notesync sync enable`[/yellow]"
)


def sync_once_cmd(*, engine_from_options, db_path: str | None, remote_url: str | None) -> None:
    """Run one reconciliation pass against the remote."""

    engine = engine_from_options(db_path, remote_url)
    try:
        if engine.reconciler is None:
            print(NO_REMOTE_MESSAGE)
            raise typer.Exit(code=1)
        try:
            report = engine.reconciler.reconcile()
        except StorageError as exc:
            print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=1) from exc
    finally:
        engine.close()
    if report.skipped:
        print(f"[yellow]Sync skipped: {report.error}[/yellow]")
        raise typer.Exit(code=1)
    if not report.ok:
        print(f"[red]Sync failed: {escape(report.error or 'unknown error')}[/red]")
        raise typer.Exit(code=1)
    print(
        f"[green]Sync ok[/green]: out={report.ops_out} in={report.ops_in} "
        f"adopted={report.adopted_remote} conflicts={report.conflicts} "
        f"pending={len(report.failures)}"
    )
    for failure in report.failures:
        print(f"- {failure['local_id']}: {escape(failure['error'])}")


def sync_daemon_cmd(
    *,
    load_config,
    run_sync_daemon,
    db_path: str | None,
    remote_url: str | None,
    interval_s: int | None,
) -> None:
    """Run reconciliation on a timer and whenever the remote becomes reachable."""

    config = load_config()
    resolved_url = remote_url or config.remote_url
    if not resolved_url:
        print(NO_REMOTE_MESSAGE)
        raise typer.Exit(code=1)
    interval = interval_s or config.sync_interval_s
    print(f"[green]Sync daemon running[/green] remote={resolved_url} interval={interval}s")
    try:
        run_sync_daemon(
            interval,
            remote_url=resolved_url,
            db_path=db_path or config.db_path,
            timeout_s=config.remote_timeout_s,
            log_path=config.sync_log,
            stop_event=threading.Event(),
        )
    except KeyboardInterrupt:
        print("Sync daemon stopped")


def sync_status_cmd(
    *, store_from_path, load_config, get_config_path, probe_remote, db_path: str | None
) -> None:
    """Show sync configuration and the pending state of local notes."""

    config = load_config()
    store = store_from_path(db_path)
    try:
        counts = store.note_counts()
        daemon_state = store.get_sync_daemon_state()
        attempts = store.list_sync_attempts(limit=1)
    finally:
        store.close()
    print(f"- Config: {get_config_path()}")
    if config.remote_url:
        reachable = probe_remote(config.remote_url)
        state = "[green]reachable[/green]" if reachable else "[yellow]unreachable[/yellow]"
        print(f"- Remote: {config.remote_url} ({state})")
    else:
        print("- Remote: not configured")
    print(
        f"- Notes: {counts['total']} total, {counts['unsynced']} local only, "
        f"{counts['dirty']} edit pending, {counts['delete_pending']} pending delete"
    )
    if attempts:
        last = attempts[0]
        outcome = "ok" if last["ok"] else f"error: {escape(str(last['error']))}"
        print(f"- Last sync: {last['finished_at']} ({outcome})")
    else:
        print("- Last sync: never")
    if daemon_state and daemon_state.get("last_error"):
        print(
            f"- Daemon error: {escape(str(daemon_state['last_error']))} "
            f"(at {daemon_state['last_error_at']})"
        )


def sync_attempts_cmd(*, store_from_path, db_path: str | None, limit: int) -> None:
    """Show recent sync attempts."""

    store = store_from_path(db_path)
    try:
        rows = store.list_sync_attempts(limit=limit)
    finally:
        store.close()
    for row in rows:
        status = "ok" if row["ok"] else "error"
        error = escape(str(row["error"] or ""))
        print(
            f"{row['finished_at']}|{status}|in={row['ops_in']}|out={row['ops_out']}"
            f"|conflicts={row['conflicts']}|{error}"
        )


def sync_conflicts_cmd(*, store_from_path, db_path: str | None, limit: int, as_json: bool) -> None:
    """Show conflicts detected during reconciliation (resolved remote-wins)."""

    store = store_from_path(db_path)
    try:
        rows = store.list_conflicts(limit=limit)
    finally:
        store.close()
    if as_json:
        print(escape(json.dumps(rows, indent=2, ensure_ascii=False)))
        return
    if not rows:
        print("No conflicts recorded")
        return
    for row in rows:
        print(
            escape(
                f"{row['detected_at']} {row['local_id']} ({row['resolution']}): "
                f"local={row['local_title']!r} {row['local_tags']} "
                f"remote={row['remote_title']!r} {row['remote_tags']}"
            )
        )


def sync_enable_cmd(
    *, read_config_or_exit, write_config_or_exit, remote_url: str, interval_s: int | None
) -> None:
    """Store the remote url (and optional interval) in the config file."""

    config_data = read_config_or_exit()
    config_data["remote_url"] = remote_url
    if interval_s is not None:
        config_data["sync_interval_s"] = interval_s
    write_config_or_exit(config_data)
    print(f"[green]Sync enabled[/green] remote={remote_url}")


def sync_disable_cmd(*, read_config_or_exit, write_config_or_exit) -> None:
    """Forget the remote url; notes stay local until it is configured again."""

    config_data = read_config_or_exit()
    config_data.pop("remote_url", None)
    write_config_or_exit(config_data)
    print("[yellow]Sync disabled[/yellow]")
