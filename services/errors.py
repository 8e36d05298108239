from __future__ import annotations


class FavoritesError(Exception):
    """Base de los errores de favoritos."""


class TierError(FavoritesError):
    def __init__(self, tier: str, message: str = ""):
        self.tier = tier
        super().__init__(f"[{tier}] {message}" if message else f"[{tier}]")


class TierReadFailure(TierError):
    """Falló la lectura de un tier (local o remoto)."""


class TierWriteFailure(TierError):
    """Falló una escritura (add/remove/merge) en un tier."""


class MalformedLocalData(FavoritesError):
    """El JSON guardado en el dispositivo no se puede interpretar."""
