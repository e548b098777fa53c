"""SSE stream transformation."""

from .transformer import (
    DoneEvent,
    ErrorEvent,
    SSEStreamTransformer,
    StreamEvent,
    StreamSummary,
    TextEvent,
    encode_event,
    encode_stream,
    process_stream,
    transform_stream,
)

__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "SSEStreamTransformer",
    "StreamEvent",
    "StreamSummary",
    "TextEvent",
    "encode_event",
    "encode_stream",
    "process_stream",
    "transform_stream",
]
