from __future__ import annotations
from typing import Any, Dict, Optional
import streamlit as st

from auth.identity import Identity, IdentityStream

def get_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get("auth_user")

def set_user(user: Optional[Dict[str, Any]]) -> Identity:
    st.session_state["auth_user"] = user
    return identity_of(user)

def logout() -> Identity:
    return set_user(None)

def identity_of(user: Optional[Dict[str, Any]]) -> Identity:
    if user and user.get("id"):
        return Identity.authenticated(user["id"])
    return Identity.anonymous()

def identity_stream() -> IdentityStream:
    # una por sesión del navegador
    if "identity_stream" not in st.session_state:
        st.session_state["identity_stream"] = IdentityStream(identity_of(get_user()))
    return st.session_state["identity_stream"]
