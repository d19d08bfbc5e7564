"""
Non-streaming Request Path - one request, one buffered JSON answer
"""

from __future__ import annotations

import asyncio
import json
import logging

from ..models.provider import ProviderRequest
from .errors import ProtocolError, StreamTimeoutError, TransportError, truncate_excerpt
from .request_adapter import get_adapter
from .transport import DEFAULT_TIMEOUT_SECONDS, AiohttpTransport, Transport

logger = logging.getLogger(__name__)


def as_single_shot(request: ProviderRequest) -> ProviderRequest:
    """Same request with the stream flag turned off"""
    if not request.streaming and not request.body.get("stream"):
        return request
    body = dict(request.body)
    if "stream" in body:
        body["stream"] = False
    return request.model_copy(update={"body": body, "streaming": False})


async def complete_once(
    request: ProviderRequest,
    transport: Transport | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Execute `request` without streaming and return the complete text.

    Raises TransportError for connection failures, non-success statuses,
    timeouts and bodies that do not carry a text answer.
    """
    transport = transport or AiohttpTransport(timeout_seconds)
    request = as_single_shot(request)
    adapter = get_adapter(request.family)
    provider = request.family.value

    async def _execute() -> str:
        async with transport.post(request, timeout_seconds=timeout_seconds) as response:
            return await response.text()

    try:
        raw = await asyncio.wait_for(_execute(), timeout_seconds)
    except asyncio.TimeoutError as e:
        raise StreamTimeoutError(f"{provider} request timed out after {timeout_seconds}s") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TransportError(
            f"{provider} returned an unparsable body: {truncate_excerpt(raw)}",
            body_excerpt=truncate_excerpt(raw),
        ) from e
    if not isinstance(data, dict):
        raise TransportError(f"{provider} returned an unexpected body", body_excerpt=truncate_excerpt(raw))

    try:
        text = adapter.extract_text(data)
    except ProtocolError as e:
        raise TransportError(f"{provider}: {e}", body_excerpt=truncate_excerpt(raw)) from e

    logger.debug("Received %s response (length: %d chars)", provider, len(text))
    return text
