from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable

from .connectivity import Connectivity
from .errors import REMOTE_FAILURES, NotFound
from .locks import RecordLocks
from .store import Note, NoteStore, normalize_tags, normalize_title
from .sync.gateway import RemoteGateway

logger = logging.getLogger(__name__)


class NoteLifecycle:
    """Local-first create/edit/delete.

    Each operation commits to the local store before any remote call. Remote
    failures leave the note pending for the reconciler and are never raised;
    ``StorageError`` and ``ValidationError`` are.
    """

    def __init__(
        self,
        store: NoteStore,
        gateway: RemoteGateway | None,
        connectivity: Connectivity,
        *,
        locks: RecordLocks | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.connectivity = connectivity
        self.locks = locks or RecordLocks()

    def _reachable_gateway(self) -> RemoteGateway | None:
        if self.gateway is None or not self.connectivity.is_online():
            return None
        return self.gateway

    def create(self, title: str, tags: Iterable[str] | None = None) -> Note:
        note = Note(
            local_id=self.store.new_local_id(),
            title=normalize_title(title),
            tags=normalize_tags(tags),
            created_at=dt.datetime.now(dt.UTC).isoformat(),
        )
        with self.locks.hold(note.local_id):
            self.store.put(note)
            gateway = self._reachable_gateway()
            if gateway is None:
                return note
            try:
                note.remote_id = gateway.create_remote(
                    note.title, list(note.tags), note.local_id, note.created_at
                )
            except REMOTE_FAILURES as exc:
                logger.warning("remote create deferred for %s: %s", note.local_id, exc)
                return note
            self.store.put(note)
            logger.info("note %s created remotely as %s", note.local_id, note.remote_id)
        return note

    def edit(self, local_id: str, title: str, tags: Iterable[str] | None = None) -> Note | None:
        new_title = normalize_title(title)
        new_tags = normalize_tags(tags)
        with self.locks.hold(local_id):
            note = self.store.get(local_id)
            if note is None:
                return None
            if note.delete_pending:
                logger.info("ignoring edit of %s: delete pending", local_id)
                return note
            note.title = new_title
            note.tags = new_tags
            if note.remote_id is None:
                self.store.put(note)
                return note
            note.edit_dirty = True
            self.store.put(note)
            gateway = self._reachable_gateway()
            if gateway is None:
                return note
            try:
                gateway.update_remote(note.remote_id, note.title, list(note.tags))
            except NotFound:
                logger.warning(
                    "remote note %s is gone; leaving removal of %s to reconciliation",
                    note.remote_id,
                    local_id,
                )
            except REMOTE_FAILURES as exc:
                logger.warning("remote update deferred for %s: %s", local_id, exc)
                return note
            note.edit_dirty = False
            self.store.put(note)
        return note

    def delete(self, local_id: str) -> bool:
        """Delete a note; returns True when the local record was removed."""

        with self.locks.hold(local_id):
            note = self.store.get(local_id)
            if note is None:
                return False
            if note.remote_id is None:
                self.store.remove(local_id)
                return True
            gateway = self._reachable_gateway()
            if gateway is None:
                note.delete_pending = True
                self.store.put(note)
                return False
            try:
                gateway.delete_remote(note.remote_id)
            except NotFound:
                logger.info("remote note %s already deleted", note.remote_id)
            except REMOTE_FAILURES as exc:
                logger.warning("remote delete deferred for %s: %s", local_id, exc)
                note.delete_pending = True
                self.store.put(note)
                return False
            self.store.remove(local_id)
        return True

    def list_notes(self) -> list[Note]:
        return self.store.list_notes()
