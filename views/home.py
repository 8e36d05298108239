from __future__ import annotations
import streamlit as st

from services.validators import safe_text
from views.components import favorite_button
from views.router import goto
from views.runtime import favorites


N_COLS = 3


def render(db):
    st.markdown("## Recetas")
    st.markdown('<div class="muted">Marca ♡ para guardar. Sin cuenta se guardan en este dispositivo.</div>', unsafe_allow_html=True)
    st.write("")

    # ✅ Botón visible solo si hay al menos 1 favorito
    fav_count = len(favorites().current())
    _, top_right = st.columns([3, 1])
    with top_right:
        if fav_count > 0:
            if st.button(f"❤️ Favoritos ({fav_count})", use_container_width=True):
                goto("favorites")

    items = db.get("items", []) or []
    if not items:
        st.info("El catálogo está vacío.")
        return

    for i in range(0, len(items), N_COLS):
        row = items[i:i+N_COLS]
        cols = st.columns(N_COLS, gap="medium")

        for col, it in zip(cols, row):
            with col:
                st.markdown(
                    f"""
                    <div class="card">
                      <div class="title">{safe_text(it.get("name",""), 70)}</div>
                      <div class="row"><span class="badge">{safe_text(it.get("category") or "—", 30)}</span></div>
                    </div>
                    """,
                    unsafe_allow_html=True
                )
                favorite_button(it)
