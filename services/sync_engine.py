"""
Motor de sincronización de favoritos.

En cada cambio de identidad decide qué tier manda en la foto:
- visitante: solo el store local
- cuenta: el store remoto (y, una sola vez por sesión, el merge local -> remoto)

add/remove/toggle pasan por aquí: se escribe en el tier activo y, solo si
la escritura fue confirmada, se actualiza FavoritesState.

Identidad y mutaciones comparten un asyncio.Lock: una mutación espera a que
termine la inicialización/merge en curso, y dos llamadas seguidas se aplican
en el orden en que se hicieron.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from auth.identity import Identity, IdentityStream
from db.local_store import LocalStore
from db.remote_store import RemoteStore
from db.repo_json import new_id
from services.errors import TierReadFailure, TierWriteFailure
from services.favorites_state import FavoritesState
from services.models import (
    FavoriteRecord,
    ItemSnapshot,
    LocalFavoriteRecord,
    now_utc,
)
from services.observable import Signal

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        state: FavoritesState,
        local: LocalStore,
        remote: RemoteStore,
        identity: IdentityStream,
    ):
        self.state = state
        self.local = local
        self.remote = remote
        self.identity = identity
        # emite la cantidad de favoritos migrados, una vez por merge exitoso
        self.merge_completed: Signal[int] = Signal("merge_completed")
        self._merged = False
        self._lock = asyncio.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def merge_latched(self) -> bool:
        return self._merged

    async def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = await self.identity.subscribe(self.handle_identity)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # -----------------------------
    # Inicialización por identidad
    # -----------------------------
    async def handle_identity(self, identity: Identity) -> None:
        async with self._lock:
            if not identity.is_authenticated:
                self.state.replace(self._local_records())
                return
            await self._load_owner(identity.owner_id)

    def _read_local(self) -> List[LocalFavoriteRecord]:
        try:
            return self.local.read()
        except TierReadFailure as e:
            logger.warning("No se pudo leer el store local: %s", e)
            return []

    def _local_records(self) -> List[FavoriteRecord]:
        return [FavoriteRecord.from_local(lf) for lf in self._read_local()]

    async def _load_owner(self, owner_id: str) -> None:
        try:
            remote = await self.remote.list_by_owner(owner_id)
        except Exception as e:
            # nunca falla la inicialización: se degrada a lo local
            logger.warning("Lectura remota falló para %s, se usan favoritos locales: %s", owner_id, e)
            self.state.replace(self._local_records())
            return

        if self._read_local() and not self._merged:
            await self._merge(owner_id, remote)
        else:
            self.state.replace(remote)

    # -----------------------------
    # Merge (una vez por sesión)
    # -----------------------------
    async def _merge(self, owner_id: str, remote: Sequence[FavoriteRecord]) -> None:
        try:
            with self.local.critical_section():
                result = await self._migrate_locked(owner_id, remote)
        except OSError as e:
            # ej: timeout del lock del dispositivo
            logger.warning("Merge pospuesto para %s: %s", owner_id, e)
            result = None

        if result is None:
            self.state.replace(remote)
            return

        records, migrated = result
        self.state.replace(records)
        if not migrated:
            # la cuenta ya tenía todos los items (otro proceso migró antes)
            return
        logger.info("Merge de favoritos: %s migrados a la cuenta %s", len(migrated), owner_id)
        self.merge_completed.emit(len(migrated))

    async def _migrate_locked(
        self, owner_id: str, remote: Sequence[FavoriteRecord]
    ) -> Optional[Tuple[List[FavoriteRecord], List[FavoriteRecord]]]:
        """
        Devuelve (foto, migrados) o None si no hubo merge.
        La foto es lo que la cuenta tiene realmente después del commit.
        """
        # se relee dentro de la sección crítica: otro proceso pudo haberlo vaciado
        local = self._read_local()
        remote_ids = {r.item_id for r in remote}
        # el remoto gana: los duplicados locales se descartan
        unique = [lf for lf in local if lf.item_id not in remote_ids]
        if not unique:
            return None

        migrated = [
            FavoriteRecord(
                id=new_id(),
                item_id=lf.item_id,
                owner_id=owner_id,
                added_at=lf.added_at,
            )
            for lf in unique
        ]
        batch = self.remote.batch()
        for rec in migrated:
            batch.set(owner_id, rec)

        try:
            applied = await self.remote.commit(batch)
        except Exception:
            logger.exception(
                "Merge falló para %s; se conservan %s favoritos locales para reintentar",
                owner_id, len(local),
            )
            return None

        self._merged = True
        try:
            self.local.clear()
        except TierWriteFailure:
            # ya están en la cuenta; el próximo merge no encontrará únicos
            logger.exception("No se pudo limpiar el store local tras el merge")

        if applied == len(migrated):
            return list(remote) + migrated, migrated
        # la lectura inicial estaba desactualizada: algunos items ya existían
        return await self._reload_after_merge(owner_id, remote, migrated)

    async def _reload_after_merge(
        self,
        owner_id: str,
        remote: Sequence[FavoriteRecord],
        migrated: Sequence[FavoriteRecord],
    ) -> Tuple[List[FavoriteRecord], List[FavoriteRecord]]:
        try:
            fresh = await self.remote.list_by_owner(owner_id)
        except Exception as e:
            logger.warning("No se pudo releer la cuenta %s tras el merge: %s", owner_id, e)
            return list(remote), []
        written = {r.id for r in migrated}
        return fresh, [r for r in fresh if r.id in written]

    # -----------------------------
    # Mutaciones
    # -----------------------------
    async def add(self, item_id: str, snapshot: Optional[ItemSnapshot] = None) -> Optional[FavoriteRecord]:
        async with self._lock:
            return await self._add_locked(item_id, snapshot)

    async def remove(self, item_id: str) -> None:
        async with self._lock:
            await self._remove_locked(item_id)

    async def toggle(self, item_id: str, snapshot: Optional[ItemSnapshot] = None) -> bool:
        async with self._lock:
            if self.state.contains(item_id):
                await self._remove_locked(item_id)
                return False
            await self._add_locked(item_id, snapshot)
            return True

    async def _add_locked(self, item_id: str, snapshot: Optional[ItemSnapshot]) -> Optional[FavoriteRecord]:
        if self.state.contains(item_id):
            return None

        identity = self.identity.current()
        if identity.is_authenticated:
            owner_id = identity.owner_id
            record = FavoriteRecord(
                id=new_id(),
                item_id=item_id,
                owner_id=owner_id,
                added_at=now_utc(),
                item_snapshot=snapshot,
            )
            try:
                stored = await self.remote.write(owner_id, record)
            except Exception as e:
                logger.warning("No se pudo guardar %s en la cuenta %s: %s", item_id, owner_id, e)
                raise
        else:
            local = LocalFavoriteRecord(item_id=item_id, added_at=now_utc())
            if not self.local.append(local):
                local = next((lf for lf in self.local.read() if lf.item_id == item_id), local)
            stored = dataclasses.replace(FavoriteRecord.from_local(local), item_snapshot=snapshot)

        self.state.apply_add(stored)
        return stored

    async def _remove_locked(self, item_id: str) -> None:
        identity = self.identity.current()
        if identity.is_authenticated:
            try:
                await self.remote.delete_where(identity.owner_id, item_id)
            except Exception as e:
                logger.warning("No se pudo quitar %s de la cuenta %s: %s", item_id, identity.owner_id, e)
                raise
        else:
            self.local.remove_by_item_id(item_id)
        self.state.apply_remove(item_id)
