"""
LLM Service - Runs conversation turns against the configured provider
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Iterable

from ..models.chat import Message, Role, StreamEvent
from ..models.provider import ProviderConfig, ProviderRequest
from .completion import complete_once
from .config_manager import provider_config
from .context_digest import ContextDigestBuilder
from .errors import TransportError
from .prompts import (
    build_code_generation_prompt,
    build_error_analysis_prompt,
    build_hint_prompt,
)
from .request_adapter import build_chat_messages, build_request
from .stream_decoder import StreamSession
from .tool_call_parser import extract_code_blocks, parse_tool_calls
from .transport import DEFAULT_TIMEOUT_SECONDS, Transport

logger = logging.getLogger(__name__)


class QueuedStream:
    """Adapts a callback-driven StreamSession to an async iterator of events"""

    def __init__(
        self,
        request: ProviderRequest,
        transport: Transport | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self.session = StreamSession(
            request,
            self._on_token,
            self._on_done,
            self._on_error,
            transport=transport,
            timeout_seconds=timeout_seconds,
        )

    def _on_token(self, delta: str) -> None:
        self._queue.put_nowait(StreamEvent(type="token", chunk=delta))

    def _on_done(self, text: str) -> None:
        edits = parse_tool_calls(text)
        self._queue.put_nowait(
            StreamEvent(
                type="done",
                done=True,
                content=text,
                edits=edits,
                code_blocks=[] if edits else extract_code_blocks(text),
            )
        )

    def _on_error(self, error: TransportError) -> None:
        self._queue.put_nowait(
            StreamEvent(type="error", done=True, error=str(error), status=error.status, content=error.partial_text)
        )

    def cancel(self) -> None:
        if not self.session.active:
            return
        self.session.cancel()
        self._queue.put_nowait(StreamEvent(type="cancelled", done=True, content=self.session.text))

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield token events, then exactly one terminal event"""
        self.session.start()
        try:
            while True:
                event = await self._queue.get()
                yield event
                if event.done:
                    return
        finally:
            # Consumer went away mid-stream
            self.cancel()


class LLMService:
    """Service for interacting with the configured LLM provider"""

    def __init__(
        self,
        config: dict[str, Any],
        transport: Transport | None = None,
        digest_builder: ContextDigestBuilder | None = None,
    ):
        self.config = config
        self.provider = config.get("provider", "openai")
        self.timeout_seconds = float(config.get("timeoutSeconds", DEFAULT_TIMEOUT_SECONDS))
        self.transport = transport
        if digest_builder is None:
            digest_cfg = config.get("digest", {})
            digest_builder = ContextDigestBuilder(
                max_chars=int(digest_cfg.get("maxChars", 4000)),
                ttl_seconds=float(digest_cfg.get("ttlSeconds", 30)),
            )
        self.digest_builder = digest_builder

    # ========== Request Construction ==========

    def provider_config(self) -> ProviderConfig:
        """Fresh ProviderConfig for one request"""
        return provider_config(self.config)

    async def get_digest(self, project_root: str | None) -> str:
        if not project_root:
            return ""
        return await asyncio.to_thread(self.digest_builder.get_digest, project_root)

    async def build_messages(
        self,
        history: Iterable[Message],
        code_context: str | None = None,
        project_root: str | None = None,
    ) -> list[Message]:
        """System prompt (with digest and inline code) followed by the history"""
        digest = await self.get_digest(project_root)
        return build_chat_messages(history, digest=digest, code_context=code_context)

    def build_request(self, messages: Iterable[Message], streaming: bool = False) -> ProviderRequest:
        return build_request(messages, self.provider_config(), streaming)

    # ========== Non-streaming ==========

    async def complete(self, messages: Iterable[Message]) -> str:
        request = self.build_request(messages, streaming=False)
        logger.info("Calling %s (%s) without streaming", self.provider, request.body.get("model"))
        text = await complete_once(request, self.transport, self.timeout_seconds)
        logger.info("Received response from %s (length: %d chars)", self.provider, len(text))
        return text

    async def generate_response(self, prompt: str, context: str | None = None) -> str:
        """One-shot answer to a single prompt"""
        messages = build_chat_messages([Message(role=Role.USER, content=prompt)], code_context=context)
        return await self.complete(messages)

    async def chat(
        self,
        history: Iterable[Message],
        code_context: str | None = None,
        project_root: str | None = None,
    ) -> str:
        messages = await self.build_messages(history, code_context, project_root)
        return await self.complete(messages)

    async def analyze_error(self, error_output: str, code: str | None = None) -> str:
        return await self.generate_response(build_error_analysis_prompt(error_output, code))

    async def generate_code(self, description: str, code: str | None = None) -> str:
        return await self.generate_response(build_code_generation_prompt(description, code))

    async def hint(self, line: str, surrounding: str | None = None) -> str:
        return (await self.generate_response(build_hint_prompt(line, surrounding))).strip()

    async def test_connection(self) -> str:
        return await self.generate_response("Say 'OK' if you can hear me.")

    # ========== Streaming ==========

    async def open_stream(
        self,
        history: Iterable[Message],
        code_context: str | None = None,
        project_root: str | None = None,
    ) -> QueuedStream:
        """Build the request and return an unstarted stream"""
        messages = await self.build_messages(history, code_context, project_root)
        request = self.build_request(messages, streaming=True)
        if not request.streaming:
            logger.info("%s answers without streaming; the reply arrives as one token", self.provider)
        return QueuedStream(request, self.transport, self.timeout_seconds)
