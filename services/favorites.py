from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Union

from auth.identity import IdentityStream
from db.local_store import LocalStore
from db.remote_store import RemoteStore
from db.storage_port import StoragePort
from services.favorites_state import FavoritesState, Snapshot
from services.item_lookup import ItemLookup, hydrate
from services.models import FavoriteRecord, ItemSnapshot
from services.observable import Projection, Signal, Unsubscribe
from services.sync_engine import SyncEngine

SnapshotInput = Union[ItemSnapshot, Dict[str, Any], None]


def _as_snapshot(snapshot: SnapshotInput) -> Optional[ItemSnapshot]:
    if snapshot is None or isinstance(snapshot, ItemSnapshot):
        return snapshot
    return ItemSnapshot.from_dict(snapshot)


class FavoritesService:
    """
    Superficie que consumen las vistas:
    - subscribe / current: la foto de favoritos
    - is_favorite(item_id).subscribe: booleano que solo emite al cambiar
    - add / remove / toggle
    - merge_completed.subscribe: aviso único tras migrar favoritos locales
    - with_details: foto con nombre/categoría/imagen para mostrar
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        identity: IdentityStream,
        lookup: Optional[ItemLookup] = None,
    ):
        self.state = FavoritesState()
        self.identity = identity
        self.lookup = lookup
        self.engine = SyncEngine(self.state, local, remote, identity)

    async def start(self) -> None:
        await self.engine.start()

    def stop(self) -> None:
        self.engine.stop()

    @property
    def merge_completed(self) -> Signal[int]:
        return self.engine.merge_completed

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        return self.state.subscribe(callback)

    def current(self) -> Snapshot:
        return self.state.current()

    def is_favorite(self, item_id: str) -> Projection:
        return self.state.is_favorite(item_id)

    def contains(self, item_id: str) -> bool:
        return self.state.contains(item_id)

    async def add(self, item_id: str, snapshot: SnapshotInput = None) -> Optional[FavoriteRecord]:
        return await self.engine.add(item_id, _as_snapshot(snapshot))

    async def remove(self, item_id: str) -> None:
        await self.engine.remove(item_id)

    async def toggle(self, item_id: str, snapshot: SnapshotInput = None) -> bool:
        return await self.engine.toggle(item_id, _as_snapshot(snapshot))

    async def with_details(self) -> List[FavoriteRecord]:
        records = list(self.state.current())
        if self.lookup is None:
            return records
        return await hydrate(records, self.lookup)


def build_favorites_service(
    device_port: StoragePort,
    remote: RemoteStore,
    identity: IdentityStream,
    lookup: Optional[ItemLookup] = None,
) -> FavoritesService:
    return FavoritesService(LocalStore(device_port), remote, identity, lookup)
