import os
import streamlit as st
from streamlit.runtime.secrets import StreamlitSecretNotFoundError

DEFAULT_API_URL = "http://localhost:17000/foxtrot"
DEFAULT_TIMEOUT_SEC = 30.0

def _lookup(name: str) -> str | None:
    # Streamlit secrets first; if not configured, fall back to environment (.env)
    try:
        if name in st.secrets:
            return str(st.secrets[name])
    except StreamlitSecretNotFoundError:
        pass
    return os.getenv(name)

def get_api_url() -> str:
    return (_lookup("FOXTROT_API_URL") or DEFAULT_API_URL).rstrip("/")

def get_timeout() -> float:
    raw = _lookup("FOXTROT_TIMEOUT_SEC")
    if not raw:
        return DEFAULT_TIMEOUT_SEC
    try:
        return float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_SEC
