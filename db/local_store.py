from __future__ import annotations
import json
import logging
from typing import List

from db.storage_port import StoragePort
from services.errors import MalformedLocalData, TierReadFailure, TierWriteFailure
from services.models import LocalFavoriteRecord

logger = logging.getLogger(__name__)

LOCAL_STORAGE_KEY = "favorites-store"


class LocalStore:
    """
    Favoritos del dispositivo (sin cuenta).
    Formato: JSON [{"itemId": ..., "addedAt": ISO-8601}, ...] bajo una sola key.
    """

    def __init__(self, port: StoragePort, key: str = LOCAL_STORAGE_KEY):
        self.port = port
        self.key = key

    def critical_section(self):
        return self.port.critical_section()

    def _decode(self, raw: bytes) -> List[LocalFavoriteRecord]:
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedLocalData(str(e)) from e
        if not isinstance(data, list):
            raise MalformedLocalData(f"se esperaba una lista, llegó {type(data).__name__}")

        out: List[LocalFavoriteRecord] = []
        seen: set[str] = set()
        for entry in data:
            try:
                rec = LocalFavoriteRecord.from_dict(entry)
            except (AttributeError, TypeError, ValueError):
                logger.warning("Favorito local inválido ignorado: %r", entry)
                continue
            if rec.item_id in seen:
                continue
            seen.add(rec.item_id)
            out.append(rec)
        return out

    def read(self) -> List[LocalFavoriteRecord]:
        try:
            raw = self.port.get(self.key)
        except OSError as e:
            raise TierReadFailure("local", str(e)) from e
        if not raw:
            return []
        try:
            return self._decode(raw)
        except MalformedLocalData as e:
            # dato corrupto = lista vacía (no es fatal)
            logger.warning("Favoritos locales corruptos, se usan como vacíos: %s", e)
            return []

    def is_empty(self) -> bool:
        return not self.read()

    def _write(self, records: List[LocalFavoriteRecord]) -> None:
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False)
        try:
            self.port.set(self.key, payload.encode("utf-8"))
        except OSError as e:
            raise TierWriteFailure("local", str(e)) from e

    def append(self, record: LocalFavoriteRecord) -> bool:
        """Agrega si no existe. Retorna False si el item ya estaba."""
        with self.critical_section():
            current = self.read()
            if any(r.item_id == record.item_id for r in current):
                return False
            current.append(record)
            self._write(current)
        return True

    def remove_by_item_id(self, item_id: str) -> bool:
        with self.critical_section():
            current = self.read()
            updated = [r for r in current if r.item_id != item_id]
            if len(updated) == len(current):
                return False
            self._write(updated)
        return True

    def clear(self) -> None:
        try:
            self.port.remove(self.key)
        except OSError as e:
            raise TierWriteFailure("local", str(e)) from e
