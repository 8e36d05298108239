from __future__ import annotations
import asyncio
import dataclasses
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from db.repo_json import find_item
from services.models import FavoriteRecord, ItemSnapshot

logger = logging.getLogger(__name__)


class ItemLookup:
    """Metadatos de despliegue por item. Nunca decide si algo es favorito."""

    async def get_by_id(self, item_id: str) -> Optional[ItemSnapshot]:
        raise NotImplementedError


class CatalogItemLookup(ItemLookup):
    """Busca en el catálogo del JSON (db["items"])."""

    def __init__(self, load: Callable[[], Dict[str, Any]]):
        # load() devuelve el db ya cargado (así se relee en cada consulta)
        self._load = load

    async def get_by_id(self, item_id: str) -> Optional[ItemSnapshot]:
        db = await asyncio.to_thread(self._load)
        it = find_item(db, item_id)
        if not it:
            return None
        return ItemSnapshot(
            name=it.get("name") or "",
            thumbnail=it.get("thumbnail") or "",
            category=it.get("category") or "",
        )


async def hydrate(records: Iterable[FavoriteRecord], lookup: ItemLookup) -> List[FavoriteRecord]:
    """
    Completa item_snapshot donde falte.
    Si el lookup falla o no encuentra el item, el registro queda como estaba.
    """
    out: List[FavoriteRecord] = []
    for r in records:
        if r.item_snapshot is None:
            try:
                snap = await lookup.get_by_id(r.item_id)
            except Exception as e:
                logger.warning("Lookup de %s falló: %s", r.item_id, e)
                snap = None
            if snap is not None:
                r = dataclasses.replace(r, item_snapshot=snap)
        out.append(r)
    return out
