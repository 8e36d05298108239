from __future__ import annotations
import logging
import os
import socket
from typing import Callable, Optional

from services.observable import StateChannel, Unsubscribe

logger = logging.getLogger(__name__)

_HOST = os.environ.get("FAVORITES_CONNECTIVITY_HOST", "1.1.1.1:53")


def _split_host(value: str) -> tuple[str, int]:
    host, _, port = value.rpartition(":")
    if not host:
        return value, 53
    return host, int(port)


def socket_probe(target: str = _HOST, timeout: float = 1.0) -> bool:
    """True si hay red (un connect TCP corto)."""
    host, port = _split_host(target)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class ConnectivityMonitor:
    """
    Dos estados: online / offline. Solo informativo para las vistas.
    subscribe() entrega True cuando está offline; replay del estado actual
    y luego solo transiciones reales.
    """

    def __init__(self, probe: Callable[[], bool] = socket_probe):
        self._probe = probe
        self._channel: Optional[StateChannel[bool]] = None

    def _ensure(self) -> StateChannel[bool]:
        if self._channel is None:
            self._channel = StateChannel(not self._probe(), name="offline")
        return self._channel

    @property
    def is_offline(self) -> bool:
        return self._ensure().value

    def subscribe(self, callback: Callable[[bool], None]) -> Unsubscribe:
        if self._channel is not None:
            # estado inicial del suscriptor = señal actual de la plataforma
            self.refresh()
        return self._ensure().subscribe(callback)

    def set_online(self, online: bool) -> None:
        ch = self._ensure()
        offline = not online
        if ch.value == offline:
            return
        logger.info("Conectividad: %s", "offline" if offline else "online")
        ch.publish(offline)

    def refresh(self) -> bool:
        """Relee la señal de la plataforma (notificación externa de cambio)."""
        online = self._probe()
        self.set_online(online)
        return online
