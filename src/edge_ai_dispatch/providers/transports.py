"""
Transports that carry a request to an upstream model.

- ``EdgeBindingTransport`` calls the platform's native binding for local-edge models.
- ``GatewayCompatTransport`` posts to the gateway's unified compatibility endpoint.
- ``PassthroughTransport`` uses the openai SDK against a provider-native gateway route.

Transports return the raw decoded payload. Shape decoding, retries and
timeouts belong to the dispatch client.
"""

import abc
import os
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from openai import AsyncOpenAI

from edge_ai_dispatch.config.schemas import GatewayConfig
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.resolver import ResolvedModel, gateway_model_name
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("providers.transports")

DEFAULT_HTTP_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


@dataclass
class TransportRequest:
    """Provider-agnostic outbound request."""

    resolved: ResolvedModel
    messages: list[dict[str, Any]]
    max_tokens: int
    temperature: float | None = None
    tools: list[dict[str, Any]] | None = None

    def body(self, *, stream: bool = False, model: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if model is not None:
            body["model"] = model
        body["messages"] = self.messages
        body["max_tokens"] = self.max_tokens
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.tools:
            body["tools"] = self.tools
        if stream:
            body["stream"] = True
        return body


@runtime_checkable
class EdgeBinding(Protocol):
    """Native low-latency binding for models hosted on the edge platform.

    ``run`` returns a response object, or an async byte iterator when the
    inputs ask for ``stream``.
    """

    async def run(self, model: str, inputs: dict[str, Any]) -> Any: ...


class BaseTransport(abc.ABC):
    name: str = "base"

    @abc.abstractmethod
    async def send(self, request: TransportRequest) -> Any:
        """Send a non-streaming request and return the raw payload."""

    @abc.abstractmethod
    def stream(self, request: TransportRequest) -> AsyncIterator[bytes]:
        """Send a streaming request and yield raw SSE bytes."""

    async def aclose(self) -> None:
        return None


class EdgeBindingTransport(BaseTransport):
    name = "edge-binding"

    def __init__(self, binding: EdgeBinding):
        self.binding = binding

    async def send(self, request: TransportRequest) -> Any:
        return await self.binding.run(request.resolved.model, request.body())

    async def stream(self, request: TransportRequest) -> AsyncIterator[bytes]:
        result = await self.binding.run(request.resolved.model, request.body(stream=True))
        if isinstance(result, bytes | str):
            yield result.encode() if isinstance(result, str) else result
            return
        if not isinstance(result, AsyncIterable):
            raise AIError(
                f"Edge binding returned {type(result).__name__} for a streaming request",
                AIErrorCode.INVALID_RESPONSE,
                model=request.resolved.model,
                provider=request.resolved.provider,
            )
        async for chunk in result:
            yield chunk.encode() if isinstance(chunk, str) else chunk


def _status_error(response: httpx.Response) -> httpx.HTTPStatusError:
    return httpx.HTTPStatusError(
        f"AI Gateway error ({response.status_code}): {response.text}",
        request=response.request,
        response=response,
    )


class GatewayCompatTransport(BaseTransport):
    """Unified OpenAI-compatible endpoint that routes to any gateway provider."""

    name = "gateway-compat"

    def __init__(self, gateway: GatewayConfig, http_client: httpx.AsyncClient | None = None):
        self.gateway = gateway
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT)
        return self._client

    async def send(self, request: TransportRequest) -> Any:
        body = request.body(model=gateway_model_name(request.resolved))
        logger.debug(f"POST {self.gateway.compat_url} model={body['model']}")

        response = await self.client.post(
            self.gateway.compat_url, json=body, headers=self.gateway.headers()
        )
        if response.is_error:
            raise _status_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise AIError(
                f"Gateway returned a non-JSON body: {response.text[:200]}",
                AIErrorCode.INVALID_RESPONSE,
                model=body["model"],
                cause=e,
            ) from e

    async def stream(self, request: TransportRequest) -> AsyncIterator[bytes]:
        body = request.body(stream=True, model=gateway_model_name(request.resolved))
        async with self.client.stream(
            "POST", self.gateway.compat_url, json=body, headers=self.gateway.headers()
        ) as response:
            if response.is_error:
                await response.aread()
                raise _status_error(response)
            async for chunk in response.aiter_bytes():
                yield chunk

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class PassthroughTransport(BaseTransport):
    """OpenAI-compatible provider route (e.g. OpenRouter) reached through the gateway."""

    name = "passthrough"

    def __init__(
        self,
        gateway: GatewayConfig,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        api_key_env: str = "OPENROUTER_API_KEY",
    ):
        self.gateway = gateway
        self._client = client
        self._owns_client = client is None
        self._api_key = api_key or os.environ.get(api_key_env)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            headers = self.gateway.headers()
            headers.pop("Content-Type", None)
            self._client = AsyncOpenAI(
                # The gateway may hold the provider key itself
                api_key=self._api_key or "gateway-managed",
                base_url=self.gateway.openrouter_url,
                default_headers=headers,
                max_retries=0,
            )
        return self._client

    def _payload(self, request: TransportRequest) -> dict[str, Any]:
        return request.body(model=request.resolved.model)

    async def send(self, request: TransportRequest) -> Any:
        completion = await self.client.chat.completions.create(**self._payload(request))
        return completion.model_dump(exclude_none=True)

    async def stream(self, request: TransportRequest) -> AsyncIterator[bytes]:
        payload = self._payload(request)
        payload["stream"] = True
        async with self.client.chat.completions.with_streaming_response.create(
            **payload
        ) as response:
            async for chunk in response.iter_bytes():
                yield chunk

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
