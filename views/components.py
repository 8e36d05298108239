from __future__ import annotations
import streamlit as st

from services.errors import FavoritesError
from views.runtime import connectivity, favorites, pop_merge_notice, run


def favorite_button(item: dict, key_prefix: str = "fav") -> None:
    """❤️ / ♡ para un item del catálogo."""
    svc = favorites()
    fav = svc.contains(item["id"])
    label = "❤️" if fav else "♡"
    help_txt = "Quitar de favoritos" if fav else "Guardar en favoritos"

    st.markdown('<div class="btn-fav">', unsafe_allow_html=True)
    if st.button(label, key=f"{key_prefix}_{item['id']}", use_container_width=True, help=help_txt):
        snapshot = {k: item.get(k) for k in ("name", "thumbnail", "category")}
        try:
            run(svc.toggle(item["id"], snapshot))
        except FavoritesError as e:
            # la vista decide: se avisa y el usuario reintenta
            st.error(f"No se pudo actualizar el favorito ({e}).")
            st.stop()
        st.rerun()
    st.markdown('</div>', unsafe_allow_html=True)


def offline_banner() -> None:
    # el probe corre una vez al crear el monitor; después solo a pedido
    mon = connectivity()
    if st.session_state.get("is_offline"):
        st.warning("📶 Estás sin conexión. Algunas funciones pueden no estar disponibles.")
        if st.button("🔄 Reintentar conexión", key="retry_connectivity"):
            mon.refresh()
            st.rerun()


def merge_notice() -> None:
    n = pop_merge_notice()
    if n:
        st.success(f"✅ Tus favoritos locales ({n}) se sincronizaron con tu cuenta.")
