from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """owner_id=None => visitante (anónimo)."""
    owner_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.owner_id)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(None)

    @classmethod
    def authenticated(cls, owner_id: str) -> "Identity":
        if not owner_id:
            raise ValueError("owner_id vacío")
        return cls(owner_id)


IdentityCallback = Callable[[Identity], Awaitable[None]]


class IdentityStream:
    """
    Emite la identidad actual en cada cambio de sesión.
    Los nuevos suscriptores reciben el último valor (replay).
    current() es la lectura puntual que usan add/remove/toggle.
    """

    def __init__(self, initial: Optional[Identity] = None):
        self._current = initial or Identity.anonymous()
        self._subscribers: Dict[int, IdentityCallback] = {}
        self._next_token = 0

    def current(self) -> Identity:
        return self._current

    async def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback
        await callback(self._current)

        def _unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return _unsubscribe

    async def emit(self, identity: Identity) -> None:
        self._current = identity
        logger.debug("Identidad: %s", identity.owner_id or "visitante")
        for cb in list(self._subscribers.values()):
            await cb(identity)
