"""Tests for the SSE decoder and stream sessions."""

from __future__ import annotations

import asyncio
import json

from conftest import DONE, FakeTransport, Recorder, sse

from codeassist.models.chat import Message, Role
from codeassist.services.errors import StreamTimeoutError
from codeassist.services.request_adapter import OpenAICompatibleAdapter, build_request
from codeassist.services.stream_decoder import SSEDecoder, StreamState, start_stream

MESSAGES = [Message(role=Role.USER, content="hi")]


def _decoder() -> SSEDecoder:
    return SSEDecoder(OpenAICompatibleAdapter().extract_delta)


def _decode_all(pieces: list[bytes]) -> list[str]:
    decoder = _decoder()
    tokens: list[str] = []
    for piece in pieces:
        tokens.extend(decoder.feed(piece))
    tokens.extend(decoder.flush())
    return tokens


STREAM = (
    b": keep-alive\n\n"
    + sse("Hel")
    + sse("lo, ")
    + "data: {\"choices\":[{\"text\":\"wörld ✓\"}]}\r\n\r\n".encode("utf-8")
    + b"event: ping\n"
    + sse("!")
    + DONE
)


def test_decodes_deltas_in_order():
    assert _decode_all([STREAM]) == ["Hel", "lo, ", "wörld ✓", "!"]


def test_chunk_boundary_invariance():
    expected = _decode_all([STREAM])
    for offset in range(len(STREAM) + 1):
        assert _decode_all([STREAM[:offset], STREAM[offset:]]) == expected, offset


def test_byte_at_a_time():
    pieces = [STREAM[i : i + 1] for i in range(len(STREAM))]
    assert _decode_all(pieces) == _decode_all([STREAM])


def test_malformed_envelope_is_skipped():
    stream = sse("a") + b"data: {not json\n\n" + b"data: [1, 2]\n\n" + sse("b") + DONE
    assert _decode_all([stream]) == ["a", "b"]


def test_nothing_after_done_is_decoded():
    decoder = _decoder()
    assert decoder.feed(sse("a") + DONE + sse("late")) == ["a"]
    assert decoder.done
    assert decoder.feed(sse("later")) == []
    assert decoder.flush() == []


def test_final_line_without_newline_is_flushed():
    decoder = _decoder()
    assert decoder.feed(sse("a") + sse("b").rstrip(b"\n")) == ["a"]
    assert decoder.flush() == ["b"]


def test_empty_deltas_are_not_tokens():
    role_only = b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
    empty = b'data: {"choices":[{"delta":{"content":""}}]}\n\n'
    assert _decode_all([role_only + empty + sse("x")]) == ["x"]


def _stream_request(config):
    return build_request(MESSAGES, config, streaming=True)


def test_scenario_tokens_then_completion(openai_config, recorder: Recorder):
    transport = FakeTransport(
        [
            b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
            b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
            b"data: [DONE]\n\n",
        ]
    )

    async def run():
        session = start_stream(
            _stream_request(openai_config),
            recorder.on_token,
            recorder.on_done,
            recorder.on_error,
            transport=transport,
        )
        await session.wait()
        return session

    session = asyncio.run(run())
    assert recorder.tokens == ["Hel", "lo"]
    assert recorder.done == ["Hello"]
    assert recorder.errors == []
    assert session.state == StreamState.COMPLETED
    assert transport.requests[0].body["stream"] is True


def test_completion_fires_once_without_done_sentinel(openai_config, recorder: Recorder):
    transport = FakeTransport([sse("a"), sse("b")])

    async def run():
        session = start_stream(
            _stream_request(openai_config), recorder.on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await session.wait()
        session.cancel()  # no-op once finished
        return session

    session = asyncio.run(run())
    assert recorder.done == ["ab"]
    assert session.state == StreamState.COMPLETED


def test_completion_fires_once_with_done_and_stream_end(openai_config, recorder: Recorder):
    transport = FakeTransport([sse("a"), DONE, sse("ignored")])

    async def run():
        session = start_stream(
            _stream_request(openai_config), recorder.on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await session.wait()

    asyncio.run(run())
    assert recorder.tokens == ["a"]
    assert recorder.done == ["a"]


def test_cancel_after_two_of_five_chunks(openai_config, recorder: Recorder):
    transport = FakeTransport([sse("one "), sse("two "), sse("three "), sse("four "), sse("five")])

    async def run():
        holder = {}

        def on_token(delta: str) -> None:
            recorder.on_token(delta)
            if len(recorder.tokens) == 2:
                holder["session"].cancel()

        holder["session"] = session = start_stream(
            _stream_request(openai_config), on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await session.wait()
        session.cancel()
        return session

    session = asyncio.run(run())
    assert session.state == StreamState.CANCELLED
    assert session.text == "one two "
    assert recorder.tokens == ["one ", "two "]
    assert recorder.done == []
    assert recorder.errors == []
    assert transport.response.closed


def test_cancel_within_one_chunk_stops_remaining_deltas(openai_config, recorder: Recorder):
    transport = FakeTransport([sse("a") + sse("b") + sse("c"), DONE])

    async def run():
        holder = {}

        def on_token(delta: str) -> None:
            recorder.on_token(delta)
            holder["session"].cancel()

        holder["session"] = session = start_stream(
            _stream_request(openai_config), on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await session.wait()
        return session

    session = asyncio.run(run())
    assert recorder.tokens == ["a"]
    assert session.tokens == ["a"]
    assert recorder.done == []


def test_cancel_before_any_chunk(openai_config, recorder: Recorder):
    transport = FakeTransport([0.05, sse("late"), DONE])

    async def run():
        session = start_stream(
            _stream_request(openai_config), recorder.on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await asyncio.sleep(0.01)
        session.cancel()
        session.cancel()
        await session.wait()
        await asyncio.sleep(0.1)
        return session

    session = asyncio.run(run())
    assert session.state == StreamState.CANCELLED
    assert session.text == ""
    assert recorder.tokens == [] and recorder.done == [] and recorder.errors == []


def test_error_status_reports_excerpt(openai_config, recorder: Recorder):
    transport = FakeTransport(status=401, body=json.dumps({"error": {"message": "bad key " + "x" * 500}}))

    async def run():
        session = start_stream(
            _stream_request(openai_config), recorder.on_token, recorder.on_done, recorder.on_error, transport=transport
        )
        await session.wait()
        return session

    session = asyncio.run(run())
    assert session.state == StreamState.FAILED
    assert recorder.tokens == [] and recorder.done == []
    [error] = recorder.errors
    assert error.status == 401
    assert "bad key" in error.body_excerpt
    assert len(error.body_excerpt) <= 203


def test_timeout_preserves_partial_text(openai_config, recorder: Recorder):
    transport = FakeTransport([sse("partial"), 5.0, sse("never")])

    async def run():
        session = start_stream(
            _stream_request(openai_config),
            recorder.on_token,
            recorder.on_done,
            recorder.on_error,
            transport=transport,
            timeout_seconds=0.1,
        )
        await session.wait()
        return session

    session = asyncio.run(run())
    assert session.state == StreamState.FAILED
    assert session.text == "partial"
    [error] = recorder.errors
    assert isinstance(error, StreamTimeoutError)
    assert error.partial_text == "partial"
    assert recorder.done == []


def test_non_streaming_family_delivers_one_token(a_style_config, recorder: Recorder):
    body = json.dumps({"content": [{"type": "text", "text": "Full answer"}]})
    transport = FakeTransport(body=body)
    request = build_request(MESSAGES, a_style_config, streaming=True)
    assert request.streaming is False
    assert request.streaming_requested is True

    async def run():
        session = start_stream(request, recorder.on_token, recorder.on_done, recorder.on_error, transport=transport)
        await session.wait()

    asyncio.run(run())
    assert recorder.tokens == ["Full answer"]
    assert recorder.done == ["Full answer"]
