from __future__ import annotations

import datetime as dt
import logging
import threading

from ..connectivity import Connectivity
from ..errors import REMOTE_FAILURES, NotFound
from ..locks import RecordLocks
from ..store import Note, NoteStore, RemoteNote, SyncReport
from .gateway import RemoteGateway

logger = logging.getLogger(__name__)

RESOLUTION_REMOTE_WINS = "remote_wins"


class Reconciler:
    """Two-pass push/pull reconciliation between the local store and the remote.

    Only one pass runs at a time. A trigger that arrives while a pass is in
    flight is coalesced into a single follow-up pass run by the same caller.
    """

    def __init__(
        self,
        store: NoteStore,
        gateway: RemoteGateway,
        connectivity: Connectivity,
        *,
        locks: RecordLocks | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.connectivity = connectivity
        self.locks = locks or RecordLocks()
        self._state_lock = threading.Lock()
        self._running = False
        self._rerun = False

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._running

    def reconcile(self) -> SyncReport:
        if not self.connectivity.is_online():
            return SyncReport(ok=False, skipped=True, error="offline")
        with self._state_lock:
            if self._running:
                self._rerun = True
                return SyncReport(ok=True, skipped=True, error="pass already running")
            self._running = True
        try:
            while True:
                report = self.run_pass()
                with self._state_lock:
                    if not self._rerun or not self.connectivity.is_online():
                        self._rerun = False
                        self._running = False
                        return report
                    self._rerun = False
        except BaseException:
            with self._state_lock:
                self._running = False
                self._rerun = False
            raise

    def run_pass(self) -> SyncReport:
        started_at = dt.datetime.now(dt.UTC).isoformat()
        report = SyncReport()
        local_notes = self.store.get_all()
        listed_at = dt.datetime.now(dt.UTC).isoformat()
        try:
            remote_notes = self.gateway.read_all_remote()
        except REMOTE_FAILURES as exc:
            return self._abort(report, started_at, f"remote listing failed: {exc}")
        self._push_local(local_notes, remote_notes, listed_at, report)

        local_notes = self.store.get_all()
        listed_at = dt.datetime.now(dt.UTC).isoformat()
        try:
            remote_notes = self.gateway.read_all_remote()
        except REMOTE_FAILURES as exc:
            return self._abort(report, started_at, f"remote listing failed after push: {exc}")
        self._pull_remote(local_notes, remote_notes, listed_at, report)

        self.store.record_sync_attempt(report, started_at=started_at)
        logger.info(
            "reconciliation pass done: out=%d in=%d conflicts=%d failures=%d",
            report.ops_out,
            report.ops_in,
            report.conflicts,
            len(report.failures),
        )
        return report

    def _abort(self, report: SyncReport, started_at: str, error: str) -> SyncReport:
        report.ok = False
        report.error = error
        logger.warning("reconciliation pass aborted: %s", error)
        self.store.record_sync_attempt(report, started_at=started_at)
        return report

    def _fail(self, report: SyncReport, note: Note, exc: Exception) -> None:
        detail = str(exc).strip() or exc.__class__.__name__
        report.failures.append({"local_id": note.local_id, "error": detail})
        logger.warning("note %s stays pending: %s", note.local_id, detail)

    def _push_local(
        self,
        local_notes: list[Note],
        remote_notes: list[RemoteNote],
        listed_at: str,
        report: SyncReport,
    ) -> None:
        by_remote_id = {remote["remote_id"]: remote for remote in remote_notes}
        by_local_id = {
            remote["local_id"]: remote for remote in remote_notes if remote.get("local_id")
        }
        for snapshot in local_notes:
            with self.locks.hold(snapshot.local_id):
                note = self.store.get(snapshot.local_id)
                if note is None:
                    continue
                try:
                    self._push_note(note, by_remote_id, by_local_id, listed_at, report)
                except REMOTE_FAILURES as exc:
                    self._fail(report, note, exc)

    def _push_note(
        self,
        note: Note,
        by_remote_id: dict[str, RemoteNote],
        by_local_id: dict[str, RemoteNote],
        listed_at: str,
        report: SyncReport,
    ) -> None:
        if note.delete_pending:
            if note.remote_id is not None and note.remote_id in by_remote_id:
                try:
                    self.gateway.delete_remote(note.remote_id)
                except NotFound:
                    logger.info("remote note %s already deleted", note.remote_id)
                else:
                    report.deleted_remote += 1
            self.store.remove(note.local_id)
            return

        if note.remote_id is None:
            orphan = by_local_id.get(note.local_id)
            if orphan is not None and self.store.get_by_remote_id(orphan["remote_id"]) is None:
                self._adopt(note, orphan)
                report.adopted_remote += 1
                return
            note.remote_id = self.gateway.create_remote(
                note.title, list(note.tags), note.local_id, note.created_at
            )
            self.store.put(note)
            report.created_remote += 1
            logger.info("note %s created remotely as %s", note.local_id, note.remote_id)
            return

        remote = by_remote_id.get(note.remote_id)
        if remote is None or note.edit_dirty or note.changed_since(listed_at):
            return
        if note.content_differs(remote):
            report.conflicts += 1
            logger.warning(
                "conflict on note %s (remote %s): remote changed without a local edit",
                note.local_id,
                note.remote_id,
            )
            self.store.record_conflict(note, remote, resolution=RESOLUTION_REMOTE_WINS)

    def _adopt(self, note: Note, remote: RemoteNote) -> None:
        note.remote_id = remote["remote_id"]
        note.edit_dirty = note.content_differs(remote)
        self.store.put(note)
        logger.info("note %s adopted remote record %s", note.local_id, note.remote_id)

    def _pull_remote(
        self,
        local_notes: list[Note],
        remote_notes: list[RemoteNote],
        listed_at: str,
        report: SyncReport,
    ) -> None:
        known_remote_ids = {note.remote_id for note in local_notes if note.remote_id}
        for remote in remote_notes:
            local = self.store.get_by_remote_id(remote["remote_id"])
            if local is None:
                if remote["remote_id"] in known_remote_ids:
                    logger.info("remote note %s was deleted locally", remote["remote_id"])
                else:
                    self._pull_unmatched(remote, report)
                continue
            with self.locks.hold(local.local_id):
                note = self.store.get(local.local_id)
                if note is None or note.remote_id != remote["remote_id"] or note.delete_pending:
                    continue
                if note.edit_dirty:
                    try:
                        self.gateway.update_remote(note.remote_id, note.title, list(note.tags))
                    except NotFound:
                        logger.warning("remote note %s vanished during push", note.remote_id)
                    except REMOTE_FAILURES as exc:
                        self._fail(report, note, exc)
                        continue
                    else:
                        report.updated_remote += 1
                    note.edit_dirty = False
                    self.store.put(note)
                elif note.content_differs(remote) and not note.changed_since(listed_at):
                    note.title = remote["title"]
                    note.tags = list(remote["tags"])
                    self.store.put(note)
                    report.updated_local += 1

        remote_ids = {remote["remote_id"] for remote in remote_notes}
        for snapshot in local_notes:
            if snapshot.remote_id is None or snapshot.remote_id in remote_ids:
                continue
            with self.locks.hold(snapshot.local_id):
                note = self.store.get(snapshot.local_id)
                if note is None or note.remote_id != snapshot.remote_id or note.delete_pending:
                    continue
                self.store.remove(note.local_id)
                report.removed_local += 1
                logger.info("note %s removed: deleted remotely", note.local_id)

    def _pull_unmatched(self, remote: RemoteNote, report: SyncReport) -> None:
        origin = remote.get("local_id")
        if origin:
            with self.locks.hold(origin):
                if self.store.get_by_remote_id(remote["remote_id"]) is not None:
                    return
                note = self.store.get(origin)
                if note is not None and note.remote_id is None and not note.delete_pending:
                    self._adopt(note, remote)
                    report.adopted_remote += 1
                    return
        note = Note(
            local_id=self.store.new_local_id(),
            remote_id=remote["remote_id"],
            title=remote["title"],
            tags=list(remote["tags"]),
            created_at=remote["created_at"] or dt.datetime.now(dt.UTC).isoformat(),
        )
        self.store.put(note)
        report.created_local += 1
