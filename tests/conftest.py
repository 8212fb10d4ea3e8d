"""Shared fixtures: a fake backend behind httpx.MockTransport and an authenticated TestClient."""

from __future__ import annotations

import json
from typing import List

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from raychat.config import settings
from raychat.services.network_manager import network_manager


class FakeBackend:
    """Records backend requests and replays configured response lines."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.lines: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = "".join(line + "\n" for line in self.lines)
        return httpx.Response(self.status_code, content=body.encode("utf-8"))

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture()
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeBackend:
    fake = FakeBackend()
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))

    async def get_request_client():
        return client, None

    monkeypatch.setattr(network_manager, "get_request_client", get_request_client)
    return fake


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {settings.AUTH_TOKEN}"}


def _parse_sse(text: str) -> List[str]:
    payloads = []
    for block in text.split("\n\n"):
        block = block.strip()
        if block:
            assert block.startswith("data: ")
            payloads.append(block[len("data: "):])
    return payloads


@pytest.fixture()
def parse_sse():
    """Split an SSE body into its `data: ` payloads."""
    return _parse_sse
