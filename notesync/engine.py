from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .connectivity import Connectivity, probe_remote
from .lifecycle import NoteLifecycle
from .locks import RecordLocks
from .store import NoteStore
from .sync.gateway import HttpRemoteGateway, RemoteGateway
from .sync.reconciler import Reconciler


@dataclass
class SyncEngine:
    store: NoteStore
    connectivity: Connectivity
    lifecycle: NoteLifecycle
    reconciler: Reconciler | None

    def close(self) -> None:
        self.store.close()


def build_engine(
    store: NoteStore,
    gateway: RemoteGateway | None,
    connectivity: Connectivity,
) -> SyncEngine:
    locks = RecordLocks()
    reconciler = Reconciler(store, gateway, connectivity, locks=locks) if gateway else None
    return SyncEngine(
        store=store,
        connectivity=connectivity,
        lifecycle=NoteLifecycle(store, gateway, connectivity, locks=locks),
        reconciler=reconciler,
    )


def open_engine(
    db_path: Path | str | None,
    remote_url: str | None,
    *,
    timeout_s: float = 3.0,
    probe: bool = True,
) -> SyncEngine:
    gateway = HttpRemoteGateway(remote_url, timeout_s=timeout_s) if remote_url else None
    online = bool(gateway) and (not probe or probe_remote(remote_url))
    return build_engine(NoteStore(db_path), gateway, Connectivity(online=online))
