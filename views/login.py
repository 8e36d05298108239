from __future__ import annotations
import streamlit as st

from auth.hashing import verify_password
from auth.session import get_user
from db.repo_json import find_user_by_email
from views.router import goto
from views.runtime import sign_in


def render(db):
    # Si ya hay sesión, no tiene sentido quedarse aquí
    if get_user():
        goto("home")

    st.markdown("## Iniciar sesión")
    st.markdown(
        '<div class="muted">Con cuenta, tus favoritos se guardan en la nube y los del dispositivo se suman una vez.</div>',
        unsafe_allow_html=True
    )
    st.write("")

    # Keys estables
    st.session_state.setdefault("login_email", "")
    st.session_state.setdefault("login_pass", "")

    email = st.text_input("Email", placeholder="tu@email.com", key="login_email")
    password = st.text_input("Contraseña", type="password", placeholder="••••••••", key="login_pass")

    if st.button("Entrar", use_container_width=True):
        u = find_user_by_email(db, email)

        if not u:
            st.error("No existe un usuario con ese email.")
            st.stop()

        if u.get("status") == "BLOCKED":
            st.error("Tu cuenta está bloqueada.")
            st.stop()

        if not verify_password(password or "", u.get("password_hash", "")):
            st.error("Contraseña incorrecta.")
            st.stop()

        # Guardar sesión + emitir identidad (dispara carga/merge de favoritos)
        sign_in(u)

        # ✅ Redirección inmediata
        goto("favorites")
