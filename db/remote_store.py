"""
Store remoto por cuenta: owners/{ownerId}/favorites/{recordId}

JsonRemoteStore guarda todo en un JSON protegido con FileLock.
Los commits por lote son todo-o-nada: se aplican sobre una copia y
el archivo se reemplaza de una sola vez.
"""
from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from filelock import FileLock

from db.storage_port import LOCK_TIMEOUT
from services.errors import TierReadFailure, TierWriteFailure
from services.models import FavoriteRecord, newest_first

logger = logging.getLogger(__name__)


@dataclass
class RemoteBatch:
    # (op, owner_id, payload): ("set", owner, FavoriteRecord) | ("delete", owner, record_id)
    ops: List[Tuple[str, str, Any]] = field(default_factory=list)

    def set(self, owner_id: str, record: FavoriteRecord) -> "RemoteBatch":
        if record.owner_id != owner_id:
            raise ValueError("el registro debe pertenecer al owner del lote")
        self.ops.append(("set", owner_id, record))
        return self

    def delete(self, owner_id: str, record_id: str) -> "RemoteBatch":
        self.ops.append(("delete", owner_id, record_id))
        return self

    def __len__(self) -> int:
        return len(self.ops)


class RemoteStore:
    """Interfaz del tier remoto. Todas las operaciones pueden suspender."""

    def batch(self) -> RemoteBatch:
        return RemoteBatch()

    async def list_by_owner(self, owner_id: str) -> List[FavoriteRecord]:
        raise NotImplementedError

    async def write(self, owner_id: str, record: FavoriteRecord) -> FavoriteRecord:
        raise NotImplementedError

    async def delete_where(self, owner_id: str, item_id: str) -> int:
        raise NotImplementedError

    async def commit(self, batch: RemoteBatch) -> int:
        """Aplica el lote todo-o-nada. Devuelve cuántas operaciones tuvieron efecto."""
        raise NotImplementedError


def _default_doc() -> Dict[str, Any]:
    return {"owners": {}}


def _favorites_of(doc: Dict[str, Any], owner_id: str) -> Dict[str, Dict[str, Any]]:
    owner = doc.setdefault("owners", {}).setdefault(owner_id, {})
    return owner.setdefault("favorites", {})


def _find_by_item(favs: Dict[str, Dict[str, Any]], item_id: str) -> List[str]:
    return [rid for rid, data in favs.items() if data.get("itemId") == item_id]


def _apply(doc: Dict[str, Any], batch: RemoteBatch) -> int:
    applied = 0
    for op, owner_id, payload in batch.ops:
        favs = _favorites_of(doc, owner_id)
        if op == "set":
            rec: FavoriteRecord = payload
            clash = [rid for rid in _find_by_item(favs, rec.item_id) if rid != rec.id]
            if clash:
                # ya existe ese item para el owner: gana el remoto existente
                logger.debug("set ignorado, %s ya existe para %s", rec.item_id, owner_id)
                continue
            favs[rec.id] = rec.to_remote_dict()
            applied += 1
        elif op == "delete":
            if favs.pop(payload, None) is not None:
                applied += 1
        else:
            raise ValueError(f"operación desconocida: {op}")
    return applied


class JsonRemoteStore(RemoteStore):
    def __init__(self, path: str, timeout: float = LOCK_TIMEOUT):
        self.path = path
        d = os.path.dirname(path)
        if d:
            os.makedirs(d, exist_ok=True)
        self._lock = FileLock(path + ".lock", timeout=timeout)

    # -----------------------------
    # IO síncrono (corre en un hilo)
    # -----------------------------
    def _load_unlocked(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return _default_doc()
        with open(self.path, "r", encoding="utf-8") as f:
            doc = json.load(f)
        if not isinstance(doc, dict):
            raise ValueError("documento remoto inválido")
        doc.setdefault("owners", {})
        return doc

    def _save_unlocked(self, doc: Dict[str, Any]) -> None:
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(doc, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def _list_sync(self, owner_id: str) -> List[FavoriteRecord]:
        try:
            with self._lock:
                doc = self._load_unlocked()
        except (OSError, ValueError) as e:
            raise TierReadFailure("remote", str(e)) from e
        favs = (doc["owners"].get(owner_id) or {}).get("favorites") or {}
        out = []
        for rid, data in favs.items():
            try:
                out.append(FavoriteRecord.from_remote_dict(rid, data))
            except (KeyError, TypeError, ValueError):
                logger.warning("Registro remoto inválido %s/%s ignorado", owner_id, rid)
        return newest_first(out)

    def _commit_sync(self, batch: RemoteBatch) -> int:
        try:
            with self._lock:
                doc = self._load_unlocked()
                staged = copy.deepcopy(doc)
                applied = _apply(staged, batch)
                self._save_unlocked(staged)
        except (OSError, ValueError) as e:
            raise TierWriteFailure("remote", str(e)) from e
        return applied

    def _write_sync(self, owner_id: str, record: FavoriteRecord) -> FavoriteRecord:
        try:
            with self._lock:
                doc = self._load_unlocked()
                favs = _favorites_of(doc, owner_id)
                existing = _find_by_item(favs, record.item_id)
                if existing:
                    rid = existing[0]
                    return FavoriteRecord.from_remote_dict(rid, favs[rid])
                favs[record.id] = record.to_remote_dict()
                self._save_unlocked(doc)
        except (OSError, ValueError, KeyError) as e:
            raise TierWriteFailure("remote", str(e)) from e
        return record

    def _delete_where_sync(self, owner_id: str, item_id: str) -> int:
        try:
            with self._lock:
                doc = self._load_unlocked()
                favs = _favorites_of(doc, owner_id)
                matches = _find_by_item(favs, item_id)
                if not matches:
                    return 0
                batch = RemoteBatch()
                for rid in matches:
                    batch.delete(owner_id, rid)
                applied = _apply(doc, batch)
                self._save_unlocked(doc)
        except (OSError, ValueError) as e:
            raise TierWriteFailure("remote", str(e)) from e
        return applied

    # -----------------------------
    # API async
    # -----------------------------
    async def list_by_owner(self, owner_id: str) -> List[FavoriteRecord]:
        return await asyncio.to_thread(self._list_sync, owner_id)

    async def write(self, owner_id: str, record: FavoriteRecord) -> FavoriteRecord:
        if record.owner_id != owner_id:
            raise ValueError("el registro debe pertenecer al owner")
        return await asyncio.to_thread(self._write_sync, owner_id, record)

    async def delete_where(self, owner_id: str, item_id: str) -> int:
        return await asyncio.to_thread(self._delete_where_sync, owner_id, item_id)

    async def commit(self, batch: RemoteBatch) -> int:
        if not len(batch):
            return 0
        applied = await asyncio.to_thread(self._commit_sync, batch)
        logger.debug("Lote remoto aplicado: %s/%s operaciones", applied, len(batch))
        return applied

