"""Closed set of upstream response shapes.

Two completion shapes exist: the edge platform's ``{"response": ...}`` and
the OpenAI-style ``{"choices": [...]}``. Each shape is an explicit variant
with a ``matches`` predicate; anything matching neither is rejected as
``INVALID_RESPONSE``. Streaming chunks follow the same two shapes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError

from edge_ai_dispatch.agent.postprocess import TokenUsage
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.tools.types import ToolCallRequest


@dataclass
class Completion:
    """One decoded, non-streaming model response."""

    text: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    shape: str = ""


def _parse_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    if raw is None or raw == "":
        return {}, None
    if isinstance(raw, dict):
        return raw, None
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            return {}, f"arguments are not valid JSON: {e.msg}"
        if isinstance(parsed, dict):
            return parsed, None
    return {}, f"arguments must be a JSON object, got {type(raw).__name__}"


def _tool_call(call_id: str | None, name: str, raw_arguments: Any, index: int) -> ToolCallRequest:
    arguments, error = _parse_arguments(raw_arguments)
    return ToolCallRequest(
        id=call_id or f"call_{index}",
        name=name,
        arguments=arguments,
        argument_error=error,
    )


# ─── Completion variants ──────────────────────────────────────────────────────


class _EdgeToolCall(BaseModel):
    id: str | None = None
    name: str
    arguments: Any = None


class EdgeResponseShape(BaseModel):
    """``{"response": str, "tool_calls"?: [{name, arguments}], "usage"?: {...}}``"""

    name: ClassVar[str] = "edge"

    response: str | None = None
    tool_calls: list[_EdgeToolCall] = Field(default_factory=list)
    usage: dict[str, Any] | None = None

    @staticmethod
    def matches(payload: dict[str, Any]) -> bool:
        return "response" in payload or (
            "tool_calls" in payload and "choices" not in payload
        )

    def to_completion(self) -> Completion:
        return Completion(
            text=self.response or "",
            tool_calls=[
                _tool_call(call.id, call.name, call.arguments, i)
                for i, call in enumerate(self.tool_calls)
            ],
            finish_reason="tool_calls" if self.tool_calls else "stop",
            usage=TokenUsage.from_wire(self.usage) if self.usage else None,
            shape=self.name,
        )


class _FunctionCall(BaseModel):
    name: str
    arguments: Any = None


class _ChatToolCall(BaseModel):
    id: str | None = None
    type: str = "function"
    function: _FunctionCall


class _ChatMessage(BaseModel):
    content: str | None = None
    tool_calls: list[_ChatToolCall] | None = None


class _ChatChoice(BaseModel):
    message: _ChatMessage
    finish_reason: str | None = None


class ChatCompletionShape(BaseModel):
    """``{"choices": [{"message": {"content", "tool_calls"?}, "finish_reason"}], "usage"?}``"""

    name: ClassVar[str] = "chat_completion"

    choices: list[_ChatChoice] = Field(min_length=1)
    usage: dict[str, Any] | None = None

    @staticmethod
    def matches(payload: dict[str, Any]) -> bool:
        return "choices" in payload

    def to_completion(self) -> Completion:
        choice = self.choices[0]
        return Completion(
            text=choice.message.content or "",
            tool_calls=[
                _tool_call(call.id, call.function.name, call.function.arguments, i)
                for i, call in enumerate(choice.message.tool_calls or [])
            ],
            finish_reason=choice.finish_reason,
            usage=TokenUsage.from_wire(self.usage) if self.usage else None,
            shape=self.name,
        )


COMPLETION_SHAPES: tuple[type[EdgeResponseShape] | type[ChatCompletionShape], ...] = (
    ChatCompletionShape,
    EdgeResponseShape,
)


def _invalid(message: str, model: str | None, cause: BaseException | None = None) -> AIError:
    return AIError(message, AIErrorCode.INVALID_RESPONSE, model=model, cause=cause)


def decode_completion(payload: Any, model: str | None = None) -> Completion:
    """Decode a raw upstream payload into a ``Completion``.

    Raises:
        AIError: ``INVALID_RESPONSE`` when the payload matches no known shape
    """
    if not isinstance(payload, dict):
        raise _invalid(
            f"Unexpected response format: expected an object, got {type(payload).__name__}",
            model,
        )

    for shape in COMPLETION_SHAPES:
        if not shape.matches(payload):
            continue
        try:
            return shape.model_validate(payload).to_completion()
        except ValidationError as e:
            raise _invalid(
                f"Malformed {shape.name} response: {e.error_count()} validation error(s)",
                model,
                cause=e,
            ) from e

    raise _invalid(
        f"Unexpected response format (keys: {', '.join(sorted(payload)) or 'none'})",
        model,
    )


# ─── Streaming chunk variants ─────────────────────────────────────────────────


@dataclass
class StreamDelta:
    text: str | None = None
    usage: TokenUsage | None = None


def decode_stream_chunk(payload: Any) -> StreamDelta | None:
    """Decode one SSE ``data:`` JSON payload; ``None`` when it matches no shape."""
    if not isinstance(payload, dict):
        return None

    usage_raw = payload.get("usage")
    usage = TokenUsage.from_wire(usage_raw) if isinstance(usage_raw, dict) else None

    if "choices" in payload:
        choices = payload["choices"]
        text = None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            delta = choices[0].get("delta") or {}
            content = delta.get("content") if isinstance(delta, dict) else None
            text = content if isinstance(content, str) else None
        return StreamDelta(text=text, usage=usage)

    if "response" in payload:
        response = payload["response"]
        return StreamDelta(
            text=response if isinstance(response, str) else None, usage=usage
        )

    return StreamDelta(usage=usage) if usage else None
