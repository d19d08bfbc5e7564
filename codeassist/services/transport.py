"""
HTTP transport - POSTs a built provider request with aiohttp
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

import aiohttp

from ..models.provider import ProviderRequest
from .errors import StreamTimeoutError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120


class Response(Protocol):
    """The parts of an HTTP response the pipeline reads"""

    status: int

    async def text(self) -> str: ...

    def iter_chunks(self) -> AsyncIterator[bytes]: ...

    def close(self) -> None: ...


class Transport(Protocol):
    def post(self, request: ProviderRequest, timeout_seconds: float | None = None) -> Any:
        """Async context manager yielding a `Response` with a success status"""
        ...


class AiohttpResponse:
    """Thin wrapper over `aiohttp.ClientResponse`"""

    def __init__(self, response: aiohttp.ClientResponse):
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status

    async def text(self) -> str:
        try:
            return await self._response.text()
        except aiohttp.ClientError as e:
            raise TransportError(f"Failed to read response: {e}") from e

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_any():
                yield chunk
        except aiohttp.ClientError as e:
            raise TransportError(f"Connection lost: {e}") from e

    def close(self) -> None:
        self._response.close()


class AiohttpTransport:
    """One ClientSession per request, like the request helper it replaces"""

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds

    @asynccontextmanager
    async def post(
        self, request: ProviderRequest, timeout_seconds: float | None = None
    ) -> AsyncIterator[AiohttpResponse]:
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds or self.timeout_seconds)
        provider = request.family.value
        async with aiohttp.ClientSession(timeout=timeout) as session:
            try:
                response = await session.post(request.url, json=request.body, headers=request.headers)
            except asyncio.TimeoutError as e:
                raise StreamTimeoutError(f"{provider} request timed out while connecting") from e
            except aiohttp.ClientError as e:
                logger.warning("%s connection failed: %s", provider, e)
                raise TransportError(f"Connection failed: {e}") from e
            try:
                if not 200 <= response.status < 300:
                    wrapped = AiohttpResponse(response)
                    error_text = await wrapped.text()
                    logger.warning("%s API error %d", provider, response.status)
                    raise TransportError.from_status(provider, response.status, error_text)
                yield AiohttpResponse(response)
            finally:
                response.release()
