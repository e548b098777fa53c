from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

# Add project src/ to sys.path for imports like `edge_ai_dispatch.*`
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import httpx
import pytest

from edge_ai_dispatch.config.schemas import AppConfig, GatewayConfig


def pytest_configure(config):
    """Configure pytest for async tests."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


def pytest_collection_modifyitems(config, items):
    """Mark coroutine tests so they run under pytest-asyncio."""
    for item in items:
        if hasattr(item, "function") and asyncio.iscoroutinefunction(item.function):
            item.add_marker(pytest.mark.asyncio)


@pytest.fixture
def app_config() -> AppConfig:
    """Config pointing at a fake gateway account, with fast retries."""
    return AppConfig(
        gateway=GatewayConfig(account_id="acct-123", gateway_id="gw-test"),
        retry={"base_delay_ms": 0, "max_delay_ms": 0, "jitter_ms": 0},
    )


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


class ScriptedGateway:
    """httpx handler that replays queued responses and records requests."""

    def __init__(self, responses: list[httpx.Response | Callable[[httpx.Request], httpx.Response]]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(500, text="no scripted response left")
        response = self.responses.pop(0)
        if callable(response):
            return response(request)
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def scripted_gateway() -> Callable[..., ScriptedGateway]:
    def factory(*responses: httpx.Response) -> ScriptedGateway:
        return ScriptedGateway(list(responses))

    return factory


def chat_completion(
    content: str | None = "ok",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str = "stop",
    usage: dict[str, int] | None = None,
) -> dict[str, Any]:
    """Build an OpenAI-style chat completion payload."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    payload: dict[str, Any] = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }
    if usage is not None:
        payload["usage"] = usage
    return payload


def tool_call(call_id: str, name: str, arguments: dict[str, Any] | str) -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {
            "name": name,
            "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
        },
    }


@pytest.fixture
def completion_payload() -> Callable[..., dict[str, Any]]:
    return chat_completion


@pytest.fixture
def tool_call_payload() -> Callable[..., dict[str, Any]]:
    return tool_call
