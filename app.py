from __future__ import annotations

import logging
import os
import streamlit as st

from auth.session import get_user
from db.repo_json import load_db, seed_if_empty
from views.components import offline_banner
from views.router import current_route, goto
from views.runtime import favorites, sign_out
from views import home, login, favorites_page


APP_NAME = "Recetas favoritas"

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _inject_css():
    css_path = os.path.join("assets", "styles.css")
    if os.path.exists(css_path):
        with open(css_path, "r", encoding="utf-8") as f:
            st.markdown(f"<style>{f.read()}</style>", unsafe_allow_html=True)


def _topbar():
    u = get_user()
    fav_count = len(favorites().current())

    with st.container():
        route = current_route("home")
        c1, c2, c3 = st.columns([3.0, 3, 1.6], vertical_alignment="center")

        with c1:
            st.markdown(
                f'<div class="brand"><span class="dot"></span> {APP_NAME}</div>',
                unsafe_allow_html=True
            )

        with c2:
            if u:
                st.markdown(f'<div class="session">Sesión: <b>{u.get("email","—")}</b></div>', unsafe_allow_html=True)
            else:
                st.markdown('<div class="session">Modo visitante</div>', unsafe_allow_html=True)

        with c3:
            a1, a2, a3 = st.columns([1, 1, 1], vertical_alignment="center")
            with a1:
                if route != "home":
                    if st.button("🏠", key="btn_top_home", help="Ir al catálogo", use_container_width=True):
                        goto("home")
            with a2:
                if st.button(f"❤️{fav_count}", key="btn_top_favs", help="Favoritos", use_container_width=True):
                    goto("favorites")
            with a3:
                if not u:
                    if st.button("👤", key="btn_top_login", help="Ingresar", use_container_width=True):
                        goto("login")
                else:
                    if st.button("⎋", key="btn_logout", help="Cerrar sesión", use_container_width=True):
                        sign_out()
                        goto("home")


def main():
    st.set_page_config(page_title=APP_NAME, page_icon="🍽️", layout="wide")
    _inject_css()

    db = seed_if_empty(load_db())

    offline_banner()
    _topbar()

    route = current_route("home")

    if route == "favorites":
        favorites_page.render(db)
    elif route == "login":
        login.render(db)
    else:
        home.render(db)


if __name__ == "__main__":
    main()
