"""
Canales reactivos mínimos (sin singletons globales).

- StateChannel: un valor actual + registro de callbacks. Los nuevos
  suscriptores reciben el valor actual al instante (replay-one) y luego
  cada cambio, en orden.
- Projection: vista derivada de un StateChannel con distinct-until-changed.
- Signal: eventos sin replay (ej: "merge completado").

Todo se entrega de forma síncrona en el hilo que publica.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Generic, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Unsubscribe = Callable[[], None]

_UNSET: Any = object()


def _safe_call(name: str, callback: Callable[[Any], None], value: Any) -> None:
    # un suscriptor roto no debe bloquear a los demás
    try:
        callback(value)
    except Exception:
        logger.exception("Suscriptor de %s falló", name or "canal")


class StateChannel(Generic[T]):
    def __init__(self, initial: T, name: str = ""):
        self.name = name
        self._value: T = initial
        self._version = 0
        self._subscribers: Dict[int, Callable[[T], None]] = {}
        # token -> última versión entregada
        self._delivered: Dict[int, int] = {}
        self._next_token = 0
        self._pending: Deque[Tuple[int, T]] = deque()
        self._delivering = False

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback
        self._delivered[token] = self._version
        _safe_call(self.name, callback, self._value)

        def _unsubscribe() -> None:
            self._subscribers.pop(token, None)
            self._delivered.pop(token, None)

        return _unsubscribe

    def publish(self, value: T) -> None:
        self._version += 1
        self._value = value
        self._pending.append((self._version, value))
        if self._delivering:
            # publicación reentrante: se entrega al terminar la ronda actual
            return
        self._delivering = True
        try:
            while self._pending:
                version, v = self._pending.popleft()
                for token, cb in list(self._subscribers.items()):
                    if self._delivered.get(token, version) >= version:
                        continue
                    self._delivered[token] = version
                    _safe_call(self.name, cb, v)
        finally:
            self._delivering = False

    def select(self, fn: Callable[[T], U]) -> "Projection[U]":
        return Projection(self, fn)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class Projection(Generic[U]):
    """Derivado puro: solo emite cuando el resultado cambia (por suscriptor)."""

    def __init__(self, source: StateChannel[Any], fn: Callable[[Any], U]):
        self._source = source
        self._fn = fn

    @property
    def value(self) -> U:
        return self._fn(self._source.value)

    def subscribe(self, callback: Callable[[U], None]) -> Unsubscribe:
        last: list = [_UNSET]

        def _on_value(v: Any) -> None:
            out = self._fn(v)
            if last[0] is not _UNSET and out == last[0]:
                return
            last[0] = out
            callback(out)

        return self._source.subscribe(_on_value)


class Signal(Generic[T]):
    def __init__(self, name: str = ""):
        self.name = name
        self._subscribers: Dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        def _unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return _unsubscribe

    def emit(self, value: T) -> None:
        for cb in list(self._subscribers.values()):
            _safe_call(self.name, cb, value)
