import json
import re
import time
from pathlib import Path
import streamlit as st

LOG_DIR = Path(".cache")
LOG_FILE = LOG_DIR / "console_events.jsonl"

REDACTION_PATTERNS = [
    re.compile(r"\bsk-[a-zA-Z0-9\-_=]{10,}\b"),
    re.compile(r"\b(?:Bearer|Basic)\s+[A-Za-z0-9\-_.=]{8,}"),
    re.compile(r"\b\d{12,19}\b"),
    re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
]

def redact(text: str) -> str:
    out = text
    for pat in REDACTION_PATTERNS:
        out = pat.sub("[REDACTED]", out)
    return out

def log_event(kind: str, **fields) -> dict:
    event = {"ts": round(time.time(), 3), "kind": kind, **fields}
    event = {k: (redact(v) if isinstance(v, str) else v) for k, v in event.items()}
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    return event

def read_events(limit: int = 200) -> list:
    if not LOG_FILE.exists():
        return []
    with LOG_FILE.open("r", encoding="utf-8") as f:
        lines = f.readlines()[-limit:]
    events = []
    for ln in lines:
        try:
            events.append(json.loads(ln))
        except json.JSONDecodeError:
            continue
    return events

def show_log_viewer_sidebar():
    st.sidebar.header("Logs")
    if st.sidebar.button("Refresh logs"):
        st.rerun()
    events = read_events()
    if events:
        st.sidebar.caption("Recent console events (redacted):")
        for ev in reversed(events):
            st.sidebar.code(json.dumps(ev, ensure_ascii=False), language="json")
    else:
        st.sidebar.caption("No logs yet.")
