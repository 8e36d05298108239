from __future__ import annotations
import os
import re
import threading
from contextlib import contextmanager
from typing import Iterator, MutableMapping, Optional

from filelock import FileLock

LOCK_TIMEOUT = float(os.environ.get("FAVORITES_LOCK_TIMEOUT", "10"))


class StoragePort:
    """
    Puerto key/value del dispositivo (bytes).
    Todo read-modify-write debe ocurrir dentro de critical_section().
    """

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def critical_section(self):
        raise NotImplementedError


class MappingStoragePort(StoragePort):
    """
    Guarda en cualquier mapping mutable: un dict (tests) o
    una entrada de st.session_state (modo visitante en la app).
    """

    def __init__(self, mapping: Optional[MutableMapping[str, bytes]] = None):
        self._data: MutableMapping[str, bytes] = mapping if mapping is not None else {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    @contextmanager
    def critical_section(self) -> Iterator[None]:
        with self._lock:
            yield


def _safe_key(key: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", key) or "_"


class FileStoragePort(StoragePort):
    """
    Un archivo por key dentro de `directory`.
    FileLock protege entre procesos/pestañas; escritura atómica con tmp + replace.
    """

    def __init__(self, directory: str, timeout: float = LOCK_TIMEOUT):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)
        self._lock = FileLock(os.path.join(directory, "storage.lock"), timeout=timeout)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _safe_key(key))

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            with open(path, "rb") as f:
                return f.read()

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp = path + ".tmp"
        with self._lock:
            with open(tmp, "wb") as f:
                f.write(value)
            os.replace(tmp, path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)

    @contextmanager
    def critical_section(self) -> Iterator[None]:
        # FileLock es reentrante dentro del mismo hilo
        with self._lock:
            yield
