"""Tests for mapping raw failures onto AI error codes."""

import asyncio

import httpx
import openai
import pytest

from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.classifier import (
    classify_error,
    code_for_status,
    extract_error_message,
)


def _status_error(status: int, text: str = "upstream said no") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://gateway.test/compat/chat/completions")
    response = httpx.Response(status, text=text, request=request)
    return httpx.HTTPStatusError(f"AI Gateway error ({status}): {text}", request=request, response=response)


@pytest.mark.parametrize(
    "message, code",
    [
        ("Rate limit exceeded", AIErrorCode.RATE_LIMITED),
        ("HTTP 429 Too Many Requests", AIErrorCode.RATE_LIMITED),
        ("you have used up your daily free allocation", AIErrorCode.RATE_LIMITED),
        ("Request timed out", AIErrorCode.TIMEOUT),
        ("Operation was aborted", AIErrorCode.TIMEOUT),
        ("401 Unauthorized", AIErrorCode.AUTH_ERROR),
        ("Invalid API key provided", AIErrorCode.AUTH_ERROR),
        ("fetch failed", AIErrorCode.NETWORK_ERROR),
        ("connection reset by peer", AIErrorCode.NETWORK_ERROR),
        ("No such model: @cf/nope", AIErrorCode.MODEL_NOT_FOUND),
        ("5004: invalid input", AIErrorCode.INVALID_RESPONSE),
        ("something odd happened", AIErrorCode.UNKNOWN),
    ],
)
def test_classifies_by_message(message, code):
    assert classify_error(RuntimeError(message)).code is code


def test_rate_limit_wins_over_later_patterns():
    # "429" and "connection" both appear; the earlier group decides
    assert classify_error("429 on connection").code is AIErrorCode.RATE_LIMITED


@pytest.mark.parametrize(
    "status, code",
    [
        (401, AIErrorCode.AUTH_ERROR),
        (403, AIErrorCode.AUTH_ERROR),
        (404, AIErrorCode.MODEL_NOT_FOUND),
        (408, AIErrorCode.TIMEOUT),
        (429, AIErrorCode.RATE_LIMITED),
        (500, AIErrorCode.NETWORK_ERROR),
        (503, AIErrorCode.NETWORK_ERROR),
        (400, AIErrorCode.INVALID_RESPONSE),
        (418, AIErrorCode.UNKNOWN),
    ],
)
def test_code_for_status(status, code):
    assert code_for_status(status) is code


def test_http_status_error_uses_status_code():
    error = classify_error(_status_error(503, "rate limit"), model="openai/gpt-4o")
    assert error.code is AIErrorCode.NETWORK_ERROR
    assert error.model == "openai/gpt-4o"
    assert error.cause is not None
    assert error.__cause__ is error.cause


def test_timeouts_and_transport_errors():
    request = httpx.Request("POST", "https://gateway.test")
    assert classify_error(httpx.ReadTimeout("slow", request=request)).code is AIErrorCode.TIMEOUT
    assert classify_error(asyncio.TimeoutError()).code is AIErrorCode.TIMEOUT
    assert classify_error(httpx.ConnectError("refused", request=request)).code is AIErrorCode.NETWORK_ERROR
    assert classify_error(openai.APIConnectionError(request=request)).code is AIErrorCode.NETWORK_ERROR


def test_existing_ai_error_passes_through():
    original = AIError("nope", AIErrorCode.AUTH_ERROR, model="m")
    assert classify_error(original, model="other", context="Attempt 2") is original


def test_context_prefixes_message():
    error = classify_error(RuntimeError("fetch failed"), context="Attempt 1", provider="openai")
    assert error.message == "Attempt 1: fetch failed"
    assert error.provider == "openai"
    assert str(error) == "[ai] AIError [NETWORK_ERROR]: Attempt 1: fetch failed"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("plain text", "plain text"),
        (None, "Unknown error"),
        ({"message": "top level"}, "top level"),
        ({"error": "inner string"}, "inner string"),
        ({"error": {"message": "bad model", "code": 5007}}, "bad model (code: 5007)"),
        ({"errors": [{"message": "first", "code": 1}, {"message": "second"}]}, "first (code: 1); second"),
        ({}, "Empty error object"),
        (ValueError(), "ValueError"),
    ],
)
def test_extract_error_message(value, expected):
    assert extract_error_message(value) == expected


def test_ai_error_to_dict_and_retryable():
    error = AIError("slow down", AIErrorCode.RATE_LIMITED, model="m", provider="p")
    assert error.retryable
    assert error.to_dict() == {
        "name": "AIError",
        "code": "RATE_LIMITED",
        "message": "slow down",
        "model": "m",
        "provider": "p",
        "cause": None,
    }
    assert not AIError("denied", AIErrorCode.AUTH_ERROR).retryable
