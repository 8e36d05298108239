from __future__ import annotations
import streamlit as st

ROUTES = ("home", "favorites", "login")

def goto(route: str):
    st.session_state["route"] = route if route in ROUTES else "home"
    st.rerun()

def current_route(default: str = "home") -> str:
    route = st.session_state.get("route", default)
    return route if route in ROUTES else default
