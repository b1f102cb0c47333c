import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import cache
from .query import FieldMapping, Query
from .telemetry import log_event


class ApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class FoxtrotClient:
    """Thin JSON client for the analytics service.

    Every failure (connection, timeout, non-2xx, undecodable body) surfaces as
    ApiError; nothing is retried.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        started = time.monotonic()
        meta = {
            "method": method,
            "url": url,
            "opcode": (payload or {}).get("opcode"),
            "table": (payload or {}).get("table"),
        }
        try:
            resp = self.session.request(method, url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            log_event("request_failed", error=str(e), **meta)
            raise ApiError(f"{method} {url} failed: {e}") from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            log_event("request_failed", status=resp.status_code, body=resp.text[:500], elapsed_ms=elapsed_ms, **meta)
            raise ApiError(f"{method} {url} returned {resp.status_code}", resp.status_code, resp.text) from e

        try:
            data = resp.json()
        except ValueError as e:
            log_event("request_failed", status=resp.status_code, error="invalid json", elapsed_ms=elapsed_ms, **meta)
            raise ApiError(f"{method} {url} returned a non-JSON body", resp.status_code, resp.text) from e

        log_event("request", status=resp.status_code, elapsed_ms=elapsed_ms, **meta)
        return data

    def list_tables(self) -> List[str]:
        tables = self._request("GET", "/v1/tables/") or []
        names = [t["name"] if isinstance(t, dict) else str(t) for t in tables]
        names.reverse()
        return names

    def fetch_fields(self, table: str, use_cache: bool = True) -> List[FieldMapping]:
        if use_cache:
            cached = cache.get_cached(self.base_url, table)
            if cached is not None:
                return [FieldMapping(**m) for m in cached]
        data = self._request("GET", f"/v1/tables/{quote(table, safe='')}/fields") or {}
        mappings = data.get("mappings", []) if isinstance(data, dict) else data
        fields = [FieldMapping(**m) for m in mappings]
        cache.set_cached(self.base_url, table, [f.model_dump() for f in fields])
        return fields

    def analytics(self, request: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/v1/analytics", request)
        if not isinstance(data, dict):
            raise ApiError("Analytics response is not a JSON object")
        return data

    def query(self, query: Query) -> Dict[str, Any]:
        return self.analytics(query.wire())

    def histogram(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self.analytics(request)
