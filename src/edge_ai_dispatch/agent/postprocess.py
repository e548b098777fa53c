"""Extraction and estimation helpers applied to raw model output.

Every extractor here is total: a miss returns a sentinel or a failed result
rather than raising.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import BaseModel, TypeAdapter, ValidationError

# Fraction of the text within which a lone closing tag still counts as reasoning
CLOSE_TAG_THRESHOLD = 0.8
CHARS_PER_TOKEN = 4
MESSAGE_TOKEN_OVERHEAD = 4

JSON_INSTRUCTIONS = (
    "Respond with valid JSON only. No explanation or markdown code fences, "
    "just the JSON object."
)

_THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.IGNORECASE | re.DOTALL)
_THINK_CLOSE = "</think>"
_FENCE_OPEN = re.compile(
    r"^```(?:json|typescript|javascript|text|ts|js)?\s*\n?", re.MULTILINE
)
_FENCE_CLOSE = re.compile(r"```\s*$", re.MULTILINE)
_JSON_OPENER = re.compile(r"[\[{]")


class _NotFound:
    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Any = _NotFound()


class TokenUsage(BaseModel):
    """Token counts for one call. Estimates unless the upstream reported them."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated: bool = False

    @classmethod
    def from_wire(cls, usage: Mapping[str, Any]) -> TokenUsage:
        """Read OpenAI-style ``prompt_tokens``/``completion_tokens`` counters."""
        input_tokens = int(usage.get("prompt_tokens", usage.get("input_tokens", 0)) or 0)
        output_tokens = int(
            usage.get("completion_tokens", usage.get("output_tokens", 0)) or 0
        )
        total = usage.get("total_tokens")
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=int(total) if total is not None else input_tokens + output_tokens,
        )


class ThinkingResult(NamedTuple):
    thinking: str | None
    content: str


class JSONParseResult(NamedTuple):
    success: bool
    data: Any = None
    error: str | None = None


# ─── Reasoning extraction ─────────────────────────────────────────────────────


def extract_thinking(text: str) -> ThinkingResult:
    """Split ``<think>`` reasoning from the answer.

    Paired blocks are removed from the content and joined into ``thinking``.
    Without a paired block, a closing tag early in the text marks everything
    before it as reasoning (some providers drop the opening tag).
    """
    blocks = _THINK_BLOCK.findall(text)
    if blocks:
        thinking = "\n\n".join(block.strip() for block in blocks)
        content = _THINK_BLOCK.sub("", text).strip()
        return ThinkingResult(thinking or None, content)

    close_at = text.lower().find(_THINK_CLOSE)
    if close_at != -1 and close_at < len(text) * CLOSE_TAG_THRESHOLD:
        thinking = text[:close_at].strip()
        content = text[close_at + len(_THINK_CLOSE) :].strip()
        if thinking and content:
            return ThinkingResult(thinking, content)

    return ThinkingResult(None, text)


# ─── JSON extraction ──────────────────────────────────────────────────────────


def clean_response(text: str) -> str:
    """Strip markdown code fences around a response."""
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def _span_end(text: str, start: int) -> int:
    """Index just past the bracket closing the one at ``start``, else ``len(text)``.

    Brackets inside string literals are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return index + 1
    return len(text)


def _top_level_values(text: str) -> Iterable[Any]:
    """Yield every JSON object or array that is not nested inside another one.

    A bracketed span that fails to decode is skipped whole, so a truncated
    object never yields one of its inner values.
    """
    decoder = json.JSONDecoder()
    pos = 0
    while True:
        match = _JSON_OPENER.search(text, pos)
        if match is None:
            return
        try:
            value, end = decoder.raw_decode(text, match.start())
        except ValueError:
            pos = _span_end(text, match.start())
            continue
        yield value
        pos = end


def extract_json(text: str) -> Any:
    """Return the first top-level JSON object, else the first array, else ``NOT_FOUND``."""
    first_array = NOT_FOUND
    for value in _top_level_values(clean_response(text)):
        if isinstance(value, dict):
            return value
        if first_array is NOT_FOUND and isinstance(value, list):
            first_array = value
    return first_array


def extract_json_array(text: str) -> list[Any] | None:
    for value in _top_level_values(clean_response(text)):
        if isinstance(value, list):
            return value
    return None


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_json(data: Any, schema: Any) -> Any:
    """Validate ``data`` against a pydantic model or any ``TypeAdapter`` type.

    Raises:
        ValidationError: If the data does not match
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_validate(data)
    return TypeAdapter(schema).validate_python(data)


def parse_json(text: str, schema: Any = None) -> JSONParseResult:
    """Extract and optionally validate JSON. Never raises for bad model output."""
    data = extract_json(text)
    if data is NOT_FOUND:
        return JSONParseResult(False, None, "Failed to extract JSON from response")
    if schema is None:
        return JSONParseResult(True, data)
    try:
        return JSONParseResult(True, validate_json(data, schema))
    except ValidationError as e:
        return JSONParseResult(
            False, data, f"Validation failed: {_format_validation_error(e)}"
        )


# ─── Token estimation ─────────────────────────────────────────────────────────


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def message_text(content: Any) -> str:
    """Plain text of a message's content, ignoring non-text parts."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, Mapping):
                if part.get("type") == "text":
                    texts.append(str(part.get("text", "")))
            elif getattr(part, "type", None) == "text":
                texts.append(str(getattr(part, "text", "")))
        return "\n".join(texts)
    return str(content)


def _content_of(message: Any) -> Any:
    if isinstance(message, Mapping):
        return message.get("content")
    return getattr(message, "content", None)


def estimate_messages_tokens(messages: Iterable[Any]) -> int:
    return sum(
        MESSAGE_TOKEN_OVERHEAD + estimate_tokens(message_text(_content_of(message)))
        for message in messages
    )


def estimate_token_usage(input_text: str, output_text: str) -> TokenUsage:
    input_tokens = estimate_tokens(input_text)
    output_tokens = estimate_tokens(output_text)
    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        estimated=True,
    )


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    return text[: max(max_chars - 3, 0)] + "..."


# ─── Prompt helpers ───────────────────────────────────────────────────────────


def format_chat_prompt(messages: Iterable[Any]) -> str:
    """Flatten a conversation into ``ROLE: content`` paragraphs."""
    lines = []
    for message in messages:
        role = message["role"] if isinstance(message, Mapping) else message.role
        lines.append(f"{str(role).upper()}: {message_text(_content_of(message))}")
    return "\n\n".join(lines)


def build_json_prompt(prompt: str, schema_description: str | None = None) -> str:
    result = prompt
    if schema_description:
        result += f"\n\nExpected JSON structure:\n{schema_description}"
    return f"{result}\n\n{JSON_INSTRUCTIONS}"


def _decycle(value: Any, seen: set[int]) -> Any:
    if isinstance(value, dict | list | tuple):
        if id(value) in seen:
            return "[Circular]"
        seen = seen | {id(value)}
        if isinstance(value, dict):
            return {str(k): _decycle(v, seen) for k, v in value.items()}
        return [_decycle(v, seen) for v in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def safe_stringify(value: Any, indent: int | None = None) -> str:
    """Serialize anything; strings pass through, cycles become ``"[Circular]"``."""
    if isinstance(value, str):
        return value
    return json.dumps(_decycle(value, set()), default=str, indent=indent, ensure_ascii=False)
