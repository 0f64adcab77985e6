from __future__ import annotations

from typing import List

import pytest

from danft.client.http import HttpResponse


class RecordingTransport:
    """Stands in for danft.client.http._do_request and records every request."""

    def __init__(self) -> None:
        self.requests: List = []
        self.responses: List = []

    def respond(self, status=200, body=b"", headers=None, reason="OK") -> "RecordingTransport":
        self.responses.append(
            HttpResponse(status=status, reason=reason, headers=headers or {}, body_bytes=body)
        )
        return self

    def __call__(self, req):
        self.requests.append(req)
        if not self.responses:
            raise AssertionError(f"unexpected request: {req.get_method()} {req.full_url}")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture
def transport(monkeypatch):
    t = RecordingTransport()
    monkeypatch.setattr("danft.client.http._do_request", t)
    return t


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the developer's own config and env out of every test."""
    monkeypatch.setattr("danft.config.DEFAULT_CONFIG_PATH", tmp_path / "no-such-config.json")
    for name in (
        "DANFT_CONFIG",
        "DANFT_BASE_URL",
        "DANFT_UPLOAD_KEY",
        "DANFT_MAX_UPLOAD_BYTES",
        "DANFT_UPLOAD_KEYS",
        "DANFT_REQUIRE_AUTH",
        "DANFT_STORAGE_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
