"""Map arbitrary upstream failures onto the closed ``AIErrorCode`` taxonomy."""

import asyncio
import json
from typing import Any

import httpx
import openai

from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode

# Checked in order; the first group with a matching fragment wins.
# Numeric fragments are edge platform error codes.
MESSAGE_PATTERNS: tuple[tuple[AIErrorCode, tuple[str, ...]], ...] = (
    (
        AIErrorCode.RATE_LIMITED,
        ("rate limit", "429", "3036", "daily free allocation", "out of capacity", "3040"),
    ),
    (AIErrorCode.TIMEOUT, ("timeout", "timed out", "3007", "aborted", "3008")),
    (
        AIErrorCode.AUTH_ERROR,
        ("401", "403", "unauthorized", "forbidden", "invalid api key", "authentication"),
    ),
    (AIErrorCode.NETWORK_ERROR, ("network", "fetch", "connection")),
    (AIErrorCode.MODEL_NOT_FOUND, ("no such model", "5007", "model not found")),
    (AIErrorCode.INVALID_RESPONSE, ("invalid data", "5004", "invalid input")),
)


def code_for_status(status: int) -> AIErrorCode:
    if status in (401, 403):
        return AIErrorCode.AUTH_ERROR
    if status == 404:
        return AIErrorCode.MODEL_NOT_FOUND
    if status == 408:
        return AIErrorCode.TIMEOUT
    if status == 429:
        return AIErrorCode.RATE_LIMITED
    if status >= 500:
        return AIErrorCode.NETWORK_ERROR
    if status in (400, 422):
        return AIErrorCode.INVALID_RESPONSE
    return AIErrorCode.UNKNOWN


def extract_error_message(error: Any) -> str:
    """Render any error-like value as readable text."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    if error is None:
        return "Unknown error"

    if isinstance(error, dict):
        if isinstance(error.get("message"), str):
            return error["message"]

        inner = error.get("error")
        if isinstance(inner, str):
            return inner
        if isinstance(inner, dict) and "message" in inner:
            code = inner.get("code")
            return f"{inner['message']} (code: {code})" if code is not None else str(inner["message"])

        errors = error.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for item in errors:
                if isinstance(item, dict):
                    msg = item.get("message", json.dumps(item, default=str))
                    code = item.get("code")
                    parts.append(f"{msg} (code: {code})" if code is not None else str(msg))
                else:
                    parts.append(str(item))
            return "; ".join(parts)

        if not error:
            return "Empty error object"

    try:
        return json.dumps(error, default=str)
    except (TypeError, ValueError):
        return repr(error)


def _code_from_exception(error: BaseException) -> AIErrorCode | None:
    if isinstance(error, httpx.TimeoutException | asyncio.TimeoutError | TimeoutError):
        return AIErrorCode.TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        return code_for_status(error.response.status_code)
    if isinstance(error, openai.APITimeoutError):
        return AIErrorCode.TIMEOUT
    if isinstance(error, openai.APIStatusError):
        return code_for_status(error.status_code)
    if isinstance(error, httpx.TransportError | openai.APIConnectionError | ConnectionError):
        return AIErrorCode.NETWORK_ERROR
    return None


def _code_from_message(message: str) -> AIErrorCode:
    lowered = message.lower()
    for code, fragments in MESSAGE_PATTERNS:
        if any(fragment in lowered for fragment in fragments):
            return code
    return AIErrorCode.UNKNOWN


def classify_error(
    error: Any,
    model: str | None = None,
    context: str | None = None,
    *,
    provider: str | None = None,
) -> AIError:
    """Wrap ``error`` in an ``AIError``.

    Errors that are already typed pass through unchanged, so classifying
    twice is a no-op.
    """
    if isinstance(error, AIError):
        return error

    message = extract_error_message(error)
    code = None
    if isinstance(error, BaseException):
        code = _code_from_exception(error)
    if code is None:
        code = _code_from_message(message)

    if context:
        message = f"{context}: {message}"

    return AIError(
        message,
        code,
        model=model,
        provider=provider,
        cause=error if isinstance(error, BaseException) else None,
    )
