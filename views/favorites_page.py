from __future__ import annotations
import streamlit as st

from services.errors import FavoritesError
from services.validators import format_added_date, safe_text
from views.components import merge_notice
from views.runtime import favorites, run


def render(db):
    st.markdown("## ❤️ Favoritos")
    st.markdown('<div class="muted">Tus recetas guardadas en un solo lugar.</div>', unsafe_allow_html=True)
    merge_notice()
    st.write("")

    svc = favorites()
    records = run(svc.with_details())

    if not records:
        st.info("Aún no tienes favoritos. Ve al catálogo y marca ♡.")
        return

    # Render en grilla (3 columnas)
    n_cols = 3
    for i in range(0, len(records), n_cols):
        row = records[i:i+n_cols]
        cols = st.columns(n_cols, gap="medium")

        for col, fav in zip(cols, row):
            snap = fav.item_snapshot
            name = snap.name if snap and snap.name else "Cargando…"
            category = snap.category if snap else ""

            with col:
                if snap and snap.thumbnail:
                    st.image(snap.thumbnail, use_container_width=True)
                st.markdown(
                    f"""
                    <div class="card">
                      <div class="title">{safe_text(name, 70)}</div>
                      <div class="small">{safe_text(category, 30)}</div>
                      <div class="small">Agregado: {format_added_date(fav.added_at)}</div>
                    </div>
                    """,
                    unsafe_allow_html=True
                )

                if st.session_state.get("confirm_remove") == fav.item_id:
                    st.markdown('<div class="small">¿Quitar de favoritos?</div>', unsafe_allow_html=True)
                    c1, c2 = st.columns(2)
                    with c1:
                        if st.button("✅ Sí", key=f"fav_rm_yes_{fav.item_id}", use_container_width=True):
                            st.session_state.pop("confirm_remove", None)
                            try:
                                run(svc.remove(fav.item_id))
                            except FavoritesError as e:
                                st.error(f"No se pudo quitar ({e}). Intenta de nuevo.")
                                st.stop()
                            st.rerun()
                    with c2:
                        if st.button("Cancelar", key=f"fav_rm_no_{fav.item_id}", use_container_width=True):
                            st.session_state.pop("confirm_remove", None)
                            st.rerun()
                elif st.button("❌ Quitar", key=f"fav_rm_{fav.item_id}", use_container_width=True):
                    # dos pasos: primero se pide confirmación
                    st.session_state["confirm_remove"] = fav.item_id
                    st.rerun()
