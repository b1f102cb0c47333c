from __future__ import annotations

from typing import Any

import pytest
import requests

from eventconsole import cache, telemetry
from eventconsole.query import FieldMapping


@pytest.fixture(autouse=True)
def isolated_files(monkeypatch, tmp_path):
    monkeypatch.setattr(telemetry, "LOG_FILE", tmp_path / "events.jsonl")
    monkeypatch.setattr(cache, "CACHE_FILE", tmp_path / "fields.jsonl")
    return tmp_path


@pytest.fixture
def fields() -> list[FieldMapping]:
    return [
        FieldMapping(field="status", type="STRING"),
        FieldMapping(field="latency", type="LONG"),
        FieldMapping(field="ratio", type="DOUBLE"),
    ]


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeHttpSession:
    """Stands in for requests.Session; replies are consumed in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "timeout": timeout})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeClient:
    """Analytics client double that records requests and returns canned pages."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries: list[dict[str, Any]] = []
        self.histograms: list[dict[str, Any]] = []

    def _next(self):
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def query(self, query):
        self.queries.append(query.wire())
        return self._next()

    def histogram(self, request):
        self.histograms.append(request)
        return self._next()
