"""Fixtures compartidas: stores en memoria / tmp_path y fallas inyectables."""

from __future__ import annotations

import os
import tempfile

# antes de importar el proyecto: datos en tmp y hashing rápido
os.environ.setdefault("MARKET_DATA_DIR", tempfile.mkdtemp(prefix="favs-data-"))
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")

from datetime import datetime, timezone
from pathlib import Path

import pytest

from auth.identity import Identity, IdentityStream
from db.local_store import LocalStore
from db.remote_store import JsonRemoteStore, RemoteBatch
from db.storage_port import MappingStoragePort
from services.errors import TierReadFailure, TierWriteFailure
from services.favorites_state import FavoritesState
from services.models import FavoriteRecord, LocalFavoriteRecord
from services.sync_engine import SyncEngine

T1 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
T3 = datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)


class SpyRemoteStore(JsonRemoteStore):
    """JsonRemoteStore que cuenta escrituras y puede fallar a pedido."""

    def __init__(self, path: str):
        super().__init__(path)
        self.commits = 0
        self.writes = 0
        self.deletes = 0
        self.fail_commit = False
        self.fail_read = False
        self.fail_write = False

    async def list_by_owner(self, owner_id):
        if self.fail_read:
            raise TierReadFailure("remote", "sin red")
        return await super().list_by_owner(owner_id)

    async def commit(self, batch):
        if self.fail_commit:
            raise TierWriteFailure("remote", "commit rechazado")
        self.commits += 1
        return await super().commit(batch)

    async def write(self, owner_id, record):
        if self.fail_write:
            raise TierWriteFailure("remote", "escritura rechazada")
        self.writes += 1
        return await super().write(owner_id, record)

    async def delete_where(self, owner_id, item_id):
        self.deletes += 1
        return await super().delete_where(owner_id, item_id)


@pytest.fixture
def port() -> MappingStoragePort:
    return MappingStoragePort({})


@pytest.fixture
def local(port: MappingStoragePort) -> LocalStore:
    return LocalStore(port)


@pytest.fixture
def remote(tmp_path: Path) -> SpyRemoteStore:
    return SpyRemoteStore(str(tmp_path / "remote_favorites.json"))


@pytest.fixture
def identity() -> IdentityStream:
    return IdentityStream(Identity.anonymous())


@pytest.fixture
def state() -> FavoritesState:
    return FavoritesState()


@pytest.fixture
def engine(state, local, remote, identity) -> SyncEngine:
    return SyncEngine(state, local, remote, identity)


def seed_local(local: LocalStore, *entries) -> None:
    for item_id, added_at in entries:
        local.append(LocalFavoriteRecord(item_id=item_id, added_at=added_at))


async def seed_remote(remote: JsonRemoteStore, owner_id: str, *entries) -> None:
    batch = RemoteBatch()
    for record_id, item_id, added_at in entries:
        batch.set(owner_id, FavoriteRecord(id=record_id, item_id=item_id, owner_id=owner_id, added_at=added_at))
    await JsonRemoteStore.commit(remote, batch)


def item_ids(records) -> list[str]:
    return [r.item_id for r in records]
