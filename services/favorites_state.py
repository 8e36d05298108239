from __future__ import annotations
from typing import Callable, Iterable, Tuple

from services.models import FavoriteRecord, newest_first
from services.observable import Projection, StateChannel, Unsubscribe

Snapshot = Tuple[FavoriteRecord, ...]


class FavoritesState:
    """
    Única foto en memoria de los favoritos (más reciente primero).
    Solo se actualiza después de una operación confirmada en algún tier.
    """

    def __init__(self):
        self._channel: StateChannel[Snapshot] = StateChannel((), name="favorites")

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        return self._channel.subscribe(callback)

    def current(self) -> Snapshot:
        return self._channel.value

    def contains(self, item_id: str) -> bool:
        return any(r.item_id == item_id for r in self._channel.value)

    def replace(self, records: Iterable[FavoriteRecord]) -> None:
        # dedupe por item_id: gana el primero (el remoto va primero en el merge)
        seen: set[str] = set()
        uniq = []
        for r in records:
            if r.item_id in seen:
                continue
            seen.add(r.item_id)
            uniq.append(r)
        self._channel.publish(tuple(newest_first(uniq)))

    def apply_add(self, record: FavoriteRecord) -> None:
        if self.contains(record.item_id):
            return
        # un registro ya existente en la cuenta puede ser más viejo que la foto
        self._channel.publish(tuple(newest_first((record,) + self.current())))

    def apply_remove(self, item_id: str) -> None:
        if not self.contains(item_id):
            return
        self._channel.publish(tuple(r for r in self.current() if r.item_id != item_id))

    def is_favorite(self, item_id: str) -> Projection:
        return self._channel.select(lambda snap: any(r.item_id == item_id for r in snap))
