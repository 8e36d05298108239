"""
Piezas por sesión del navegador (en st.session_state):
event loop, servicio de favoritos y monitor de conectividad.

Streamlit re-ejecuta el script en cada interacción; todo lo asíncrono
corre en el mismo loop de la sesión para que el asyncio.Lock del motor
siga siendo válido entre reruns.
"""
from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Dict, Optional, TypeVar

import streamlit as st

from auth.session import identity_stream, logout, set_user
from db.remote_store import JsonRemoteStore
from db.repo_json import DEVICE_DIR, REMOTE_FAVORITES_PATH, load_db
from db.storage_port import FileStoragePort, MappingStoragePort, StoragePort
from services.connectivity import ConnectivityMonitor
from services.favorites import FavoritesService, build_favorites_service
from services.item_lookup import CatalogItemLookup

T = TypeVar("T")


def _loop() -> asyncio.AbstractEventLoop:
    if "event_loop" not in st.session_state:
        st.session_state["event_loop"] = asyncio.new_event_loop()
    return st.session_state["event_loop"]


def run(coro: Awaitable[T]) -> T:
    return _loop().run_until_complete(coro)


def _device_port() -> StoragePort:
    if DEVICE_DIR:
        return FileStoragePort(DEVICE_DIR)
    # modo visitante: vive en la sesión (como los favoritos de visitante de antes)
    st.session_state.setdefault("device_storage", {})
    return MappingStoragePort(st.session_state["device_storage"])


def favorites() -> FavoritesService:
    if "favorites_service" not in st.session_state:
        svc = build_favorites_service(
            _device_port(),
            JsonRemoteStore(REMOTE_FAVORITES_PATH),
            identity_stream(),
            CatalogItemLookup(load_db),
        )
        # aviso único tras el merge (se muestra en el siguiente render)
        svc.merge_completed.subscribe(lambda n: st.session_state.__setitem__("merge_notice", n))
        run(svc.start())
        st.session_state["favorites_service"] = svc
    return st.session_state["favorites_service"]


def connectivity() -> ConnectivityMonitor:
    if "connectivity" not in st.session_state:
        monitor = ConnectivityMonitor()
        monitor.subscribe(lambda offline: st.session_state.__setitem__("is_offline", offline))
        st.session_state["connectivity"] = monitor
    return st.session_state["connectivity"]


def sign_in(user: Dict[str, Any]) -> None:
    identity = set_user({k: user[k] for k in ["id", "email", "status"]})
    favorites()
    run(identity_stream().emit(identity))


def sign_out() -> None:
    identity = logout()
    favorites()
    run(identity_stream().emit(identity))


def pop_merge_notice() -> Optional[int]:
    return st.session_state.pop("merge_notice", None)
