import streamlit as st
from typing import Dict, Any

PREFS_KEY = "console_prefs"

DEFAULT_PREFS: Dict[str, Any] = {
    "sort_order": "desc",
    "period_select": "custom",
    "tile_period": "minutes",
    "tile_timeframe": 24,
}

def _ensure():
    if PREFS_KEY not in st.session_state:
        st.session_state[PREFS_KEY] = DEFAULT_PREFS.copy()

def get_prefs() -> Dict[str, Any]:
    _ensure()
    return st.session_state[PREFS_KEY]

def set_pref(key: str, value):
    _ensure()
    st.session_state[PREFS_KEY][key] = value
