"""Upstream SSE bytes → internal ``StreamEvent`` objects → internal SSE bytes."""

from __future__ import annotations

import codecs
import inspect
import json
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from edge_ai_dispatch.agent.postprocess import TokenUsage
from edge_ai_dispatch.providers.shapes import decode_stream_chunk
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("streaming.transformer")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class TextEvent(BaseModel):
    type: Literal["text"] = "text"
    data: str


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    usage: TokenUsage | None = None


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[TextEvent | DoneEvent | ErrorEvent, Field(discriminator="type")]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(data: str | bytes | dict[str, Any]) -> StreamEvent:
    """Decode one internal event from its JSON form."""
    if isinstance(data, dict):
        return _EVENT_ADAPTER.validate_python(data)
    return _EVENT_ADAPTER.validate_json(data)


class SSEStreamTransformer:
    """Incremental parser for upstream ``data: <json>`` lines.

    Chunks may split a line anywhere, including inside a multi-byte
    character; the trailing partial line is held until the next chunk.
    Nothing is emitted after the ``done`` event.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._usage: TokenUsage | None = None
        self.done = False

    @property
    def usage(self) -> TokenUsage | None:
        return self._usage

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        if self.done:
            return []

        self._buffer += self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events: list[StreamEvent] = []
        for line in lines:
            event = self._process_line(line)
            if event is None:
                continue
            events.append(event)
            if isinstance(event, DoneEvent):
                self.done = True
                self._buffer = ""
                break
        return events

    def flush(self) -> list[StreamEvent]:
        """Handle end of stream: only a trailing done sentinel is honoured."""
        if self.done:
            return []
        remaining = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        for line in remaining.split("\n"):
            if self._payload(line) == DONE_SENTINEL:
                self.done = True
                return [DoneEvent(usage=self._usage)]
        return []

    @staticmethod
    def _payload(line: str) -> str | None:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return None
        return line[len(DATA_PREFIX) :].strip()

    def _process_line(self, line: str) -> StreamEvent | None:
        payload = self._payload(line)
        if not payload:
            return None
        if payload == DONE_SENTINEL:
            return DoneEvent(usage=self._usage)

        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            # Fragment or malformed line
            return None

        delta = decode_stream_chunk(parsed)
        if delta is None:
            return None
        if delta.usage is not None:
            self._usage = delta.usage
        if delta.text:
            return TextEvent(data=delta.text)
        return None


async def transform_stream(
    chunks: AsyncIterable[bytes | str], *, ensure_done: bool = True
) -> AsyncIterator[StreamEvent]:
    """Turn upstream SSE chunks into events.

    With ``ensure_done`` a stream that closes without the sentinel still ends
    with a ``done`` event.
    """
    transformer = SSEStreamTransformer()
    async for chunk in chunks:
        for event in transformer.feed(chunk):
            yield event
        if transformer.done:
            return
    for event in transformer.flush():
        yield event
    if ensure_done and not transformer.done:
        yield DoneEvent(usage=transformer.usage)


class StreamSummary(BaseModel):
    full_text: str = ""
    usage: TokenUsage | None = None
    error: str | None = None


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


async def process_stream(
    chunks: AsyncIterable[bytes | str],
    *,
    on_text: Callable[[str], Any] | None = None,
    on_done: Callable[[TokenUsage | None], Any] | None = None,
    on_error: Callable[[str], Any] | None = None,
) -> StreamSummary:
    """Consume a stream through callbacks and return the accumulated text.

    A failure while reading is reported through ``on_error`` and recorded on
    the summary instead of being raised.
    """
    summary = StreamSummary()
    parts: list[str] = []
    try:
        async for event in transform_stream(chunks, ensure_done=False):
            if isinstance(event, TextEvent):
                parts.append(event.data)
                if on_text is not None:
                    await _maybe_await(on_text(event.data))
            elif isinstance(event, DoneEvent):
                summary.usage = event.usage
                if on_done is not None:
                    await _maybe_await(on_done(event.usage))
            elif isinstance(event, ErrorEvent):
                summary.error = event.message
                if on_error is not None:
                    await _maybe_await(on_error(event.message))
    except Exception as e:
        logger.warning(f"Stream processing failed: {e}")
        summary.error = str(e) or type(e).__name__
        if on_error is not None:
            await _maybe_await(on_error(summary.error))

    summary.full_text = "".join(parts)
    return summary


def encode_event(event: StreamEvent) -> bytes:
    """Internal SSE wire form: ``data: {"type": ..., ...}`` plus a blank line."""
    return f"data: {event.model_dump_json(exclude_none=True)}\n\n".encode()


async def encode_stream(events: AsyncIterable[StreamEvent]) -> AsyncIterator[bytes]:
    async for event in events:
        yield encode_event(event)
