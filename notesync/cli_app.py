from __future__ import annotations

import logging

import typer
from rich import print

from . import __version__
from .commands.common import (
    engine_from_options,
    read_config_or_exit,
    store_from_path,
    write_config_or_exit,
)
from .commands.note_cmds import add_cmd, edit_cmd, list_cmd, remove_cmd, show_cmd
from .commands.sync_cmds import (
    sync_attempts_cmd,
    sync_conflicts_cmd,
    sync_daemon_cmd,
    sync_disable_cmd,
    sync_enable_cmd,
    sync_once_cmd,
    sync_status_cmd,
)
from .config import get_config_path, load_config
from .connectivity import probe_remote
from .server import serve_forever
from .sync.daemon import run_sync_daemon

app = typer.Typer(help="notesync: offline-first notes with remote sync")
sync_app = typer.Typer(help="Synchronize local notes with the remote store")
app.add_typer(sync_app, name="sync")


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log sync activity to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")


@app.command("init-db")
def init_db(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Create the local database if needed."""

    store = store_from_path(db_path)
    print(f"Initialized database at {store.db_path}")
    store.close()


@app.command()
def add(
    title: str,
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    remote_url: str = typer.Option(None, help="Remote notes server URL"),
) -> None:
    """Create a note."""

    add_cmd(
        engine_from_options=engine_from_options,
        db_path=db_path,
        remote_url=remote_url,
        title=title,
        tags=tag,
    )


@app.command()
def edit(
    local_id: str,
    title: str = typer.Option(None, help="New title"),
    tag: list[str] = typer.Option(None, "--tag", "-t", help="Replace tags (repeatable)"),
    clear_tags: bool = typer.Option(False, "--clear-tags", help="Remove all tags"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    remote_url: str = typer.Option(None, help="Remote notes server URL"),
) -> None:
    """Edit a note."""

    edit_cmd(
        engine_from_options=engine_from_options,
        db_path=db_path,
        remote_url=remote_url,
        local_id=local_id,
        title=title,
        tags=tag,
        clear_tags=clear_tags,
    )


@app.command("rm")
def remove(
    local_id: str,
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    remote_url: str = typer.Option(None, help="Remote notes server URL"),
) -> None:
    """Delete a note."""

    remove_cmd(
        engine_from_options=engine_from_options,
        db_path=db_path,
        remote_url=remote_url,
        local_id=local_id,
    )


@app.command("list")
def list_notes(
    limit: int = typer.Option(50, help="Number of notes to show"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """List notes, newest first."""

    list_cmd(store_from_path=store_from_path, db_path=db_path, limit=limit)


@app.command()
def show(
    local_id: str,
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show a note as JSON."""

    show_cmd(store_from_path=store_from_path, db_path=db_path, local_id=local_id)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind"),
    port: int = typer.Option(None, help="Port to bind"),
    remote_db_path: str = typer.Option(None, help="Path to the server-side SQLite database"),
) -> None:
    """Run a notes server that clients can sync against."""

    config = load_config()
    bind_host = host or config.serve_host
    bind_port = port or config.serve_port
    print(f"[green]Serving notes on http://{bind_host}:{bind_port}[/green]")
    try:
        serve_forever(bind_host, bind_port, db_path=remote_db_path or config.remote_db_path)
    except KeyboardInterrupt:
        print("Server stopped")


@sync_app.command("once")
def sync_once(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    remote_url: str = typer.Option(None, help="Remote notes server URL"),
) -> None:
    """Run a single reconciliation pass."""

    sync_once_cmd(engine_from_options=engine_from_options, db_path=db_path, remote_url=remote_url)


@sync_app.command("daemon")
def sync_daemon(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    remote_url: str = typer.Option(None, help="Remote notes server URL"),
    interval_s: int = typer.Option(None, "--interval", help="Seconds between passes"),
) -> None:
    """Run the sync loop in the foreground."""

    sync_daemon_cmd(
        load_config=load_config,
        run_sync_daemon=run_sync_daemon,
        db_path=db_path,
        remote_url=remote_url,
        interval_s=interval_s,
    )


@sync_app.command("status")
def sync_status(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show sync configuration and pending work."""

    sync_status_cmd(
        store_from_path=store_from_path,
        load_config=load_config,
        get_config_path=get_config_path,
        probe_remote=probe_remote,
        db_path=db_path,
    )


@sync_app.command("attempts")
def sync_attempts(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    limit: int = typer.Option(10, help="Number of attempts to show"),
) -> None:
    """Show recent sync attempts."""

    sync_attempts_cmd(store_from_path=store_from_path, db_path=db_path, limit=limit)


@sync_app.command("conflicts")
def sync_conflicts(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    limit: int = typer.Option(20, help="Number of conflicts to show"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show conflicts detected during sync."""

    sync_conflicts_cmd(
        store_from_path=store_from_path, db_path=db_path, limit=limit, as_json=as_json
    )


@sync_app.command("enable")
def sync_enable(
    remote_url: str = typer.Option(..., help="Remote notes server URL"),
    interval_s: int = typer.Option(None, "--interval", help="Seconds between daemon passes"),
) -> None:
    """Configure the remote to sync with."""

    sync_enable_cmd(
        read_config_or_exit=read_config_or_exit,
        write_config_or_exit=write_config_or_exit,
        remote_url=remote_url,
        interval_s=interval_s,
    )


@sync_app.command("disable")
def sync_disable() -> None:
    """Stop syncing; notes stay local."""

    sync_disable_cmd(
        read_config_or_exit=read_config_or_exit, write_config_or_exit=write_config_or_exit
    )


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()
