"""Tests for the SSE stream transformer."""

import json

from edge_ai_dispatch.agent.postprocess import TokenUsage
from edge_ai_dispatch.streaming.transformer import (
    DoneEvent,
    ErrorEvent,
    SSEStreamTransformer,
    TextEvent,
    encode_event,
    encode_stream,
    parse_event,
    process_stream,
    transform_stream,
)


def _line(payload) -> str:
    return f"data: {json.dumps(payload)}\n"


async def _aiter(items):
    for item in items:
        yield item


def test_line_split_across_chunks_yields_one_event():
    line = _line({"response": "hello"}).encode()
    transformer = SSEStreamTransformer()
    assert transformer.feed(line[:9]) == []
    assert transformer.feed(line[9:]) == [TextEvent(data="hello")]


def test_multibyte_character_split_across_chunks():
    raw = 'data: {"response": "héllo ✓"}\n'.encode("utf-8")
    split_at = raw.index("✓".encode("utf-8")) + 1
    transformer = SSEStreamTransformer()
    events = transformer.feed(raw[:split_at]) + transformer.feed(raw[split_at:])
    assert events == [TextEvent(data="héllo ✓")]


def test_openai_delta_and_done_with_usage():
    transformer = SSEStreamTransformer()
    events = transformer.feed(
        _line({"choices": [{"delta": {"content": "Hi"}}]})
        + "\n"
        + _line({"usage": {"prompt_tokens": 3, "completion_tokens": 1}})
        + "data: [DONE]\n"
    )
    assert events == [
        TextEvent(data="Hi"),
        DoneEvent(usage=TokenUsage(input_tokens=3, output_tokens=1, total_tokens=4)),
    ]
    assert transformer.done


def test_nothing_after_done():
    transformer = SSEStreamTransformer()
    events = transformer.feed("data: [DONE]\n" + _line({"response": "late"}))
    assert events == [DoneEvent()]
    assert transformer.feed(_line({"response": "later"})) == []
    assert transformer.flush() == []


def test_ignores_comments_blank_and_malformed_lines():
    transformer = SSEStreamTransformer()
    events = transformer.feed(": keep-alive\n\nevent: ping\ndata: {broken\n" + _line({"response": "ok"}))
    assert events == [TextEvent(data="ok")]


def test_flush_only_honours_trailing_done():
    transformer = SSEStreamTransformer()
    transformer.feed('data: {"response": "partial"}')
    assert transformer.flush() == []

    transformer = SSEStreamTransformer()
    transformer.feed("data: [DONE]")
    assert transformer.flush() == [DoneEvent()]


async def test_transform_stream_adds_done_when_upstream_omits_it():
    events = [e async for e in transform_stream(_aiter([_line({"response": "a"})]))]
    assert events == [TextEvent(data="a"), DoneEvent()]

    events = [e async for e in transform_stream(_aiter([_line({"response": "a"})]), ensure_done=False)]
    assert events == [TextEvent(data="a")]


async def test_process_stream_collects_text_and_usage():
    texts, done = [], []

    async def on_done(usage):
        done.append(usage)

    summary = await process_stream(
        _aiter([_line({"response": "fo"}), _line({"response": "o"}), "data: [DONE]\n"]),
        on_text=texts.append,
        on_done=on_done,
    )
    assert summary.full_text == "foo"
    assert texts == ["fo", "o"]
    assert done == [None]
    assert summary.error is None


async def test_process_stream_reports_read_failure():
    async def broken():
        yield _line({"response": "start"})
        raise ConnectionError("socket closed")

    errors = []
    summary = await process_stream(broken(), on_error=errors.append)
    assert summary.full_text == "start"
    assert summary.error == "socket closed"
    assert errors == ["socket closed"]


async def test_encode_and_parse_internal_events():
    assert encode_event(TextEvent(data="x")) == b'data: {"type":"text","data":"x"}\n\n'
    assert encode_event(DoneEvent()) == b'data: {"type":"done"}\n\n'
    assert parse_event('{"type": "error", "message": "nope"}') == ErrorEvent(message="nope")
    assert isinstance(parse_event({"type": "done"}), DoneEvent)

    encoded = [chunk async for chunk in encode_stream(_aiter([TextEvent(data="a"), DoneEvent()]))]
    assert len(encoded) == 2
