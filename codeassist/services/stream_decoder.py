"""
Streaming Transport Decoder - server-sent-event decoding with cooperative
cancellation.

`SSEDecoder` turns arbitrarily fragmented bytes into text deltas.
`StreamSession` drives one streaming request: it feeds chunks through the
decoder, fires callbacks in arrival order, and guarantees that exactly one
terminal callback (done or error) fires unless the session is cancelled.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from enum import Enum
from typing import Any, Callable

from ..models.provider import ProviderRequest
from .completion import complete_once
from .errors import ProtocolError, StreamTimeoutError, TransportError
from .request_adapter import get_adapter
from .transport import DEFAULT_TIMEOUT_SECONDS, AiohttpTransport, Response, Transport

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

TokenCallback = Callable[[str], Any]
DoneCallback = Callable[[str], Any]
ErrorCallback = Callable[[TransportError], Any]


class SSEDecoder:
    """Incremental `text/event-stream` decoder.

    Keeps one line buffer across chunks; only complete lines are decoded,
    the trailing fragment waits for the next chunk.
    """

    def __init__(self, extract_delta: Callable[[dict[str, Any]], str | None]):
        self._extract = extract_delta
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes | str) -> list[str]:
        """Consume one chunk and return the deltas of every completed line"""
        if self.done:
            return []
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer += self._utf8.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def flush(self) -> list[str]:
        """Decode whatever is left once the transport reports end-of-response"""
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        if self.done or not rest:
            return []
        return self._process(rest.split("\n"))

    def _process(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            if self.done:
                break
            try:
                delta = self.decode_line(line)
            except ProtocolError as e:
                logger.debug("Skipping malformed stream line: %s", e)
                continue
            if delta:
                deltas.append(delta)
        return deltas

    def decode_line(self, line: str) -> str | None:
        line = line.rstrip("\r")
        if not line or line.startswith(":"):
            return None
        if not line.startswith("data:"):
            # event:, id:, retry: fields carry no text
            return None
        payload = line[5:]
        if payload.startswith(" "):
            payload = payload[1:]
        if payload.strip() == DONE_SENTINEL:
            self.done = True
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"invalid JSON envelope: {payload[:80]!r}") from e
        if not isinstance(data, dict):
            raise ProtocolError(f"unexpected envelope: {payload[:80]!r}")
        return self._extract(data)


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class StreamSession:
    """One in-flight streaming request.

    `cancel()` is the abort capability: it closes the connection, stops every
    further callback and freezes `tokens`. It may be called any number of
    times, before or after the stream finished.
    """

    def __init__(
        self,
        request: ProviderRequest,
        on_token: TokenCallback,
        on_done: DoneCallback,
        on_error: ErrorCallback,
        *,
        transport: Transport | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.request = request
        self.state = StreamState.IDLE
        self.tokens: list[str] = []
        self.error: TransportError | None = None
        self.timeout_seconds = timeout_seconds
        self._on_token = on_token
        self._on_done = on_done
        self._on_error = on_error
        self._transport = transport or AiohttpTransport(timeout_seconds)
        self._adapter = get_adapter(request.family)
        self._response: Response | None = None
        self._task: asyncio.Task | None = None

    @property
    def text(self) -> str:
        return "".join(self.tokens)

    @property
    def active(self) -> bool:
        return self.state in (StreamState.IDLE, StreamState.STREAMING)

    @property
    def cancelled(self) -> bool:
        return self.state == StreamState.CANCELLED

    def start(self) -> "StreamSession":
        """Schedule the request on the running event loop"""
        if self.state == StreamState.CANCELLED:
            return self
        if self.state != StreamState.IDLE:
            raise RuntimeError(f"Session already {self.state.value}")
        self.state = StreamState.STREAMING
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def wait(self) -> "StreamSession":
        """Wait until the session reaches a terminal state"""
        if self._task is not None:
            await asyncio.wait({self._task})
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
        return self

    def cancel(self) -> None:
        if not self.active:
            return
        self.state = StreamState.CANCELLED
        logger.debug("Stream cancelled after %d tokens", len(self.tokens))
        if self._response is not None:
            self._response.close()
            self._response = None
        if self._task is not None and not self._task.done():
            self._task.cancel()

    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            if self.request.streaming:
                await self._stream()
            else:
                # Family answers in one piece; deliver it as a single token
                text = await complete_once(self.request, self._transport, self.timeout_seconds)
                self._deliver([text])
            self._complete()
        except asyncio.CancelledError:
            if self.state == StreamState.CANCELLED:
                return
            raise
        except asyncio.TimeoutError:
            self._fail(
                StreamTimeoutError(
                    f"No complete response within {self.timeout_seconds}s",
                    partial_text=self.text,
                )
            )
        except TransportError as e:
            e.partial_text = self.text
            self._fail(e)
        finally:
            self._response = None
            if self.state == StreamState.STREAMING:
                # A callback raised; the exception surfaces through wait()
                self.state = StreamState.FAILED

    async def _stream(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        decoder = SSEDecoder(self._adapter.extract_delta)

        async with self._transport.post(self.request, timeout_seconds=self.timeout_seconds) as response:
            if self.state != StreamState.STREAMING:
                return
            self._response = response
            chunks = response.iter_chunks().__aiter__()
            while not decoder.done:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), remaining)
                except StopAsyncIteration:
                    break
                if self.state != StreamState.STREAMING:
                    return
                self._deliver(decoder.feed(chunk))
            self._deliver(decoder.flush())

    def _deliver(self, deltas: list[str]) -> None:
        for delta in deltas:
            if self.state != StreamState.STREAMING:
                return
            self.tokens.append(delta)
            self._on_token(delta)

    def _complete(self) -> None:
        if self.state != StreamState.STREAMING:
            return
        self.state = StreamState.COMPLETED
        self._on_done(self.text)

    def _fail(self, error: TransportError) -> None:
        if self.state != StreamState.STREAMING:
            return
        self.state = StreamState.FAILED
        self.error = error
        logger.warning("Stream failed after %d tokens: %s", len(self.tokens), error)
        self._on_error(error)


def start_stream(
    request: ProviderRequest,
    on_token: TokenCallback,
    on_done: DoneCallback,
    on_error: ErrorCallback,
    *,
    transport: Transport | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> StreamSession:
    """Start streaming `request`; call `.cancel()` on the result to abort"""
    session = StreamSession(
        request,
        on_token,
        on_done,
        on_error,
        transport=transport,
        timeout_seconds=timeout_seconds,
    )
    return session.start()
