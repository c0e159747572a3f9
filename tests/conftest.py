#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Shared fixtures: the relay app wired to a simulated upstream.
"""

import json
from typing import AsyncIterator, Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from chat_relay.config import Settings, get_settings
from chat_relay.services.network_manager import get_http_client
from main import app


UPSTREAM_BASE = "https://upstream.test/v1"


def sse_lines(*payloads) -> bytes:
    """Upstream event stream body for the given payloads (dicts or raw strings)."""
    parts = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        parts.append(f"data: {data}\n\n")
    return "".join(parts).encode("utf-8")


def delta(content: str) -> dict:
    return {"choices": [{"delta": {"content": content}}]}


async def chunked(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class FakeUpstream:
    """Records upstream requests and answers them with ``respond``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.responses: List[httpx.Response] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"choices": [{"message": {"content": "hi"}}]}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.respond(request)
        self.responses.append(response)
        return response

    @property
    def all_closed(self) -> bool:
        return all(response.is_closed for response in self.responses)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    def reply_with(self, status_code: int = 200, **kwargs) -> None:
        self.respond = lambda request: httpx.Response(status_code, **kwargs)

    def stream_chunks(self, *chunks: bytes, status_code: int = 200) -> None:
        self.respond = lambda request: httpx.Response(
            status_code,
            headers={"Content-Type": "text/event-stream"},
            content=chunked(*chunks),
        )


@pytest.fixture
def relay_settings() -> Settings:
    return Settings(
        OPENAI_API_BASE=UPSTREAM_BASE,
        OPENAI_MODEL="default-model",
        OPENAI_API_KEY="sk-test",
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client(upstream, relay_settings):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_settings] = lambda: relay_settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
