import json
import time
import hashlib
from pathlib import Path
from typing import Any, Optional

from .constants import FIELDS_TTL_SEC

CACHE_DIR = Path(".cache")
CACHE_FILE = CACHE_DIR / "fields_cache.jsonl"

def _hash_key(base_url: str, table: str) -> str:
    h = hashlib.sha256()
    h.update(base_url.rstrip("/").encode("utf-8"))
    h.update(b"|")
    h.update(table.encode("utf-8"))
    return h.hexdigest()

def get_cached(base_url: str, table: str) -> Optional[Any]:
    key = _hash_key(base_url, table)
    if not CACHE_FILE.exists():
        return None
    with CACHE_FILE.open("r", encoding="utf-8") as f:
        for line in reversed(f.readlines()):
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                continue
            if rec.get("key") == key and time.time() - rec.get("ts", 0) < rec.get("ttl", FIELDS_TTL_SEC):
                return rec.get("value")
    return None

def set_cached(base_url: str, table: str, value: Any, ttl: int = FIELDS_TTL_SEC) -> None:
    key = _hash_key(base_url, table)
    rec = {"key": key, "ts": time.time(), "ttl": ttl, "value": value}
    CACHE_FILE.parent.mkdir(parents=True, exist_ok=True)
    with CACHE_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False) + "\n")
