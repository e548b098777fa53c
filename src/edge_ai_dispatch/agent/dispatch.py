"""
Dispatch client: the single entry point route handlers use to call models.

A call resolves the model identifier, picks a transport, races each attempt
against the timeout inside the retry executor, decodes the response shape and
runs reasoning extraction over the text.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import aclosing
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from edge_ai_dispatch.agent.models import (
    AIResult,
    ChatMessage,
    DispatchOptions,
    JSONResult,
)
from edge_ai_dispatch.agent.postprocess import (
    TokenUsage,
    build_json_prompt,
    estimate_messages_tokens,
    estimate_tokens,
    extract_thinking,
    parse_json,
)
from edge_ai_dispatch.agent.retry import RetryPolicy, with_retry
from edge_ai_dispatch.config.schemas import AppConfig
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.classifier import classify_error
from edge_ai_dispatch.providers.registry import (
    ModelConfig,
    ModelRegistry,
    build_registry,
    resolve_alias,
)
from edge_ai_dispatch.providers.resolver import ResolvedModel, RoutingClass, resolve
from edge_ai_dispatch.providers.shapes import Completion, decode_completion
from edge_ai_dispatch.providers.transports import (
    BaseTransport,
    EdgeBinding,
    EdgeBindingTransport,
    GatewayCompatTransport,
    PassthroughTransport,
    TransportRequest,
)
from edge_ai_dispatch.streaming.transformer import (
    ErrorEvent,
    StreamEvent,
    transform_stream,
)
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("agent.dispatch")

JSON_SYSTEM_PROMPT = "You are a helpful assistant that responds with valid JSON only."

MessageLike = ChatMessage | Mapping[str, Any]
OptionsLike = DispatchOptions | Mapping[str, Any] | None


@dataclass
class PreparedCall:
    model_id: str
    resolved: ResolvedModel
    model_config: ModelConfig | None
    request: TransportRequest
    transport: BaseTransport
    policy: RetryPolicy
    timeout_ms: int


@dataclass
class CompletionOutcome:
    completion: Completion
    model_id: str
    provider: str
    attempts: int
    duration_ms: float


def _coerce_options(options: OptionsLike) -> DispatchOptions:
    if options is None:
        return DispatchOptions()
    if isinstance(options, DispatchOptions):
        return options
    return DispatchOptions.model_validate(dict(options))


def _with_system_prompt(
    messages: list[dict[str, Any]], system_prompt: str | None
) -> list[dict[str, Any]]:
    if not system_prompt or (messages and messages[0].get("role") == "system"):
        return messages
    return [{"role": "system", "content": system_prompt}, *messages]


class DispatchClient:
    """Orchestrates model calls across the edge binding and the AI gateway."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        registry: ModelRegistry | None = None,
        edge_binding: EdgeBinding | None = None,
        http_client: httpx.AsyncClient | None = None,
        openai_client: AsyncOpenAI | None = None,
        sleep=asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            config: Application configuration (defaults when omitted)
            registry: Model catalog; defaults to the built-in catalog plus ``config.models``
            edge_binding: Native binding for local-edge models, if the runtime offers one
            http_client: httpx client used for the gateway compatibility endpoint
            openai_client: openai client used for passthrough providers
            sleep: Coroutine used for backoff sleeps
        """
        self.config = config or AppConfig()
        self.registry = registry or build_registry(self.config.models)
        self._edge = EdgeBindingTransport(edge_binding) if edge_binding is not None else None
        self._gateway = GatewayCompatTransport(self.config.gateway, http_client)
        self._passthrough = PassthroughTransport(self.config.gateway, openai_client)
        self._sleep = sleep

    async def __aenter__(self) -> DispatchClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._gateway.aclose()
        await self._passthrough.aclose()

    # ─── Preparation ──────────────────────────────────────────────────────────

    def model_id_for(self, options: OptionsLike = None) -> str:
        options = _coerce_options(options)
        return resolve_alias(options.model or self.config.client.default_model)

    def transport_for(self, resolved: ResolvedModel) -> BaseTransport:
        routing = resolved.routing_class
        if routing is RoutingClass.LOCAL_EDGE and self._edge is not None:
            return self._edge
        if routing is RoutingClass.PASSTHROUGH:
            return self._passthrough
        return self._gateway

    def prepare(
        self,
        messages: list[dict[str, Any]],
        options: OptionsLike = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> PreparedCall:
        options = _coerce_options(options)
        client_defaults = self.config.client
        model_id = self.model_id_for(options)
        resolved = resolve(model_id)
        model_config = self.registry.get(model_id)

        max_tokens = options.max_tokens or (
            model_config.max_output_tokens
            if model_config
            else client_defaults.fallback_max_tokens
        )
        temperature = (
            options.temperature
            if options.temperature is not None
            else client_defaults.temperature
        )
        retries = options.retries if options.retries is not None else client_defaults.retries

        request = TransportRequest(
            resolved=resolved,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tools,
        )
        return PreparedCall(
            model_id=model_id,
            resolved=resolved,
            model_config=model_config,
            request=request,
            transport=self.transport_for(resolved),
            policy=RetryPolicy.from_config(self.config.retry, retries),
            timeout_ms=options.timeout_ms or client_defaults.timeout_ms,
        )

    def _timeout_error(self, call: PreparedCall, cause: BaseException) -> AIError:
        return AIError(
            f"Request timed out after {call.timeout_ms}ms",
            AIErrorCode.TIMEOUT,
            model=call.model_id,
            provider=call.resolved.provider,
            cause=cause,
        )

    # ─── Non-streaming ────────────────────────────────────────────────────────

    async def complete(
        self,
        messages: list[dict[str, Any]],
        options: OptionsLike = None,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> CompletionOutcome:
        """Run one model round on wire-format messages and decode the response."""
        call = self.prepare(messages, options, tools)

        async def attempt() -> Completion:
            try:
                async with asyncio.timeout(call.timeout_ms / 1000):
                    payload = await call.transport.send(call.request)
            except TimeoutError as e:
                raise self._timeout_error(call, e) from e
            return decode_completion(payload, call.model_id)

        logger.debug(
            f"Dispatching {call.model_id} via {call.transport.name} "
            f"(max_tokens={call.request.max_tokens}, retries={call.policy.retries})"
        )
        start = time.perf_counter()
        try:
            outcome = await with_retry(
                attempt,
                model=call.model_id,
                provider=call.resolved.provider,
                policy=call.policy,
                sleep=self._sleep,
            )
        except AIError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(f"{call.model_id} failed after {duration_ms:.0f}ms: {e}")
            raise
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Completed {call.model_id} via {call.transport.name} in {duration_ms:.0f}ms "
            f"(attempts={outcome.attempts})"
        )
        return CompletionOutcome(
            completion=outcome.value,
            model_id=call.model_id,
            provider=call.resolved.provider,
            attempts=outcome.attempts,
            duration_ms=duration_ms,
        )

    @staticmethod
    def to_wire_messages(
        messages: Iterable[MessageLike], system_prompt: str | None = None
    ) -> list[dict[str, Any]]:
        """Validate caller messages and convert them to wire dicts, order kept."""
        wire = []
        for message in messages:
            if not isinstance(message, ChatMessage):
                try:
                    message = ChatMessage.model_validate(message)
                except ValidationError as e:
                    raise AIError(
                        f"Invalid chat message: {e.errors()[0]['msg']}",
                        AIErrorCode.VALIDATION_ERROR,
                        cause=e,
                    ) from e
            wire.append(message.to_wire())
        if not wire:
            raise AIError("At least one message is required", AIErrorCode.VALIDATION_ERROR)
        return _with_system_prompt(wire, system_prompt)

    @staticmethod
    def usage_for(outcome: CompletionOutcome, messages: list[dict[str, Any]]) -> TokenUsage:
        if outcome.completion.usage is not None:
            return outcome.completion.usage
        input_tokens = estimate_messages_tokens(messages)
        output_tokens = estimate_tokens(outcome.completion.text)
        return TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            estimated=True,
        )

    async def chat(
        self, messages: Iterable[MessageLike], options: OptionsLike = None
    ) -> AIResult:
        options = _coerce_options(options)
        wire = self.to_wire_messages(messages, options.system_prompt)
        outcome = await self.complete(wire, options)

        thinking, content = extract_thinking(outcome.completion.text)
        return AIResult(
            response=content,
            thinking=thinking,
            model=outcome.model_id,
            provider=outcome.provider,
            usage=self.usage_for(outcome, wire),
            duration_ms=outcome.duration_ms,
            attempts=outcome.attempts,
            finish_reason=outcome.completion.finish_reason,
        )

    async def generate(self, prompt: str, options: OptionsLike = None) -> AIResult:
        return await self.chat([{"role": "user", "content": prompt}], options)

    async def generate_json(
        self,
        prompt: str,
        schema: type[BaseModel] | Any = None,
        options: OptionsLike = None,
        *,
        schema_description: str | None = None,
    ) -> JSONResult:
        """Ask for JSON and extract it.

        Transport failures raise ``AIError``; a reply without usable JSON, or
        one that fails ``schema``, returns ``success=False``.
        """
        options = _coerce_options(options)
        if not options.system_prompt:
            options = options.model_copy(update={"system_prompt": JSON_SYSTEM_PROMPT})

        result = await self.generate(build_json_prompt(prompt, schema_description), options)
        parsed = parse_json(result.response, schema)
        if not parsed.success:
            logger.warning(f"JSON extraction failed for {result.model}: {parsed.error}")

        return JSONResult(
            success=parsed.success,
            data=parsed.data,
            error=parsed.error,
            raw=result.response,
            thinking=result.thinking,
            model=result.model,
            usage=result.usage,
            duration_ms=result.duration_ms,
            attempts=result.attempts,
        )

    # ─── Streaming ────────────────────────────────────────────────────────────

    def chat_stream(
        self, messages: Iterable[MessageLike], options: OptionsLike = None
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion as events.

        Preconditions are checked before returning, so an unsupported model
        raises here. Failures after that arrive as a final ``ErrorEvent``.
        """
        options = _coerce_options(options)
        wire = self.to_wire_messages(messages, options.system_prompt)
        return self.stream_messages(wire, options)

    def stream_messages(
        self, messages: list[dict[str, Any]], options: OptionsLike = None
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model round on wire-format messages, as ``complete`` does."""
        call = self.prepare(messages, options)
        if not self.registry.supports_streaming(call.model_id):
            raise AIError(
                f"Model {call.model_id} does not support streaming",
                AIErrorCode.INVALID_RESPONSE,
                model=call.model_id,
                provider=call.resolved.provider,
            )
        return self._stream_events(call)

    def generate_stream(
        self, prompt: str, options: OptionsLike = None
    ) -> AsyncIterator[StreamEvent]:
        return self.chat_stream([{"role": "user", "content": prompt}], options)

    async def _first_chunk_within_timeout(self, call: PreparedCall) -> AsyncIterator[bytes]:
        async with aclosing(call.transport.stream(call.request)) as upstream:
            chunks = upstream.__aiter__()
            try:
                async with asyncio.timeout(call.timeout_ms / 1000):
                    first = await chunks.__anext__()
            except StopAsyncIteration:
                return
            except TimeoutError as e:
                raise self._timeout_error(call, e) from e
            yield first
            async for chunk in chunks:
                yield chunk

    async def _stream_events(self, call: PreparedCall) -> AsyncIterator[StreamEvent]:
        logger.debug(f"Streaming {call.model_id} via {call.transport.name}")
        try:
            async with aclosing(self._first_chunk_within_timeout(call)) as chunks:
                async for event in transform_stream(chunks):
                    yield event
        except Exception as e:
            error = classify_error(e, call.model_id, provider=call.resolved.provider)
            logger.error(f"Stream for {call.model_id} failed: {error}")
            yield ErrorEvent(message=error.message)
