"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

import pytest

from codeassist.models.provider import ProviderConfig, ProviderFamily
from codeassist.services.errors import TransportError


def sse(content: str) -> bytes:
    """One OpenAI-style streaming event carrying `content`"""
    envelope = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(envelope)}\n\n".encode("utf-8")


DONE = b"data: [DONE]\n\n"


class FakeResponse:
    """In-memory response; a float in `chunks` sleeps that many seconds"""

    def __init__(self, chunks=(), status: int = 200, body: str = ""):
        self.status = status
        self.body = body
        self._chunks = list(chunks)
        self.closed = False
        self.delivered = 0

    async def text(self) -> str:
        return self.body

    async def iter_chunks(self):
        for chunk in self._chunks:
            if self.closed:
                return
            if isinstance(chunk, float):
                await asyncio.sleep(chunk)
                continue
            await asyncio.sleep(0)
            self.delivered += 1
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, chunks=(), status: int = 200, body: str = ""):
        self.response = FakeResponse(chunks, status, body)
        self.requests = []

    @asynccontextmanager
    async def post(self, request, timeout_seconds=None):
        self.requests.append(request)
        if not 200 <= self.response.status < 300:
            raise TransportError.from_status(request.family.value, self.response.status, self.response.body)
        yield self.response


class Recorder:
    """Collects stream callbacks"""

    def __init__(self):
        self.tokens: list[str] = []
        self.done: list[str] = []
        self.errors: list[TransportError] = []

    def on_token(self, delta: str) -> None:
        self.tokens.append(delta)

    def on_done(self, text: str) -> None:
        self.done.append(text)

    def on_error(self, error: TransportError) -> None:
        self.errors.append(error)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def openai_config() -> ProviderConfig:
    return ProviderConfig(
        family=ProviderFamily.OPENAI_COMPATIBLE,
        endpoint="https://api.openai.com/v1/chat/completions",
        api_key="sk-test-secret",
        model="gpt-4o",
        max_tokens=512,
    )


@pytest.fixture
def a_style_config() -> ProviderConfig:
    return ProviderConfig(
        family=ProviderFamily.A_STYLE,
        endpoint="https://api.anthropic.com/v1/messages",
        api_key="ak-test-secret",
        model="claude-sonnet-4-20250514",
        max_tokens=512,
    )
