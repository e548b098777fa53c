"""Multi-round tool execution loop on top of the dispatch client."""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from edge_ai_dispatch.agent.models import DispatchOptions
from edge_ai_dispatch.agent.postprocess import TokenUsage, extract_thinking
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.registry import recommended_model
from edge_ai_dispatch.streaming.transformer import ErrorEvent, StreamEvent
from edge_ai_dispatch.tools.executor import ToolExecutor, ToolObserver
from edge_ai_dispatch.tools.registry import ToolRegistry
from edge_ai_dispatch.tools.types import (
    ToolCallRequest,
    ToolCallResult,
    ToolContext,
    ToolDefinition,
)
from edge_ai_dispatch.utils.logging import get_logger

if TYPE_CHECKING:
    from edge_ai_dispatch.agent.dispatch import DispatchClient, MessageLike, OptionsLike

logger = get_logger("tools.loop")


class RunWithToolsResult(BaseModel):
    response: str
    thinking: str | None = None
    tool_calls: list[ToolCallResult] = Field(default_factory=list)
    iterations: int = Field(ge=0)
    completed: bool = Field(
        description="False when the loop stopped at max_iterations while the model still wanted tools"
    )
    duration_ms: float = Field(ge=0)
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


def _assistant_tool_message(text: str, calls: Sequence[ToolCallRequest]) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": text,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in calls
        ],
    }


def _add_usage(total: TokenUsage, usage: TokenUsage) -> TokenUsage:
    return TokenUsage(
        input_tokens=total.input_tokens + usage.input_tokens,
        output_tokens=total.output_tokens + usage.output_tokens,
        total_tokens=total.total_tokens + usage.total_tokens,
        estimated=total.estimated or usage.estimated,
    )

@dataclass
class _Rounds:
    conversation: list[dict[str, Any]]
    results: list[ToolCallResult] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    text: str = ""
    completed: bool = False
    iterations: int = 0


def _prepare(
    client: DispatchClient, options: OptionsLike, max_iterations: int | None
) -> tuple[DispatchOptions, str, int]:
    """Coerce options and check tool support before any network call."""
    if options is None or isinstance(options, DispatchOptions):
        options = options or DispatchOptions()
    else:
        options = DispatchOptions.model_validate(dict(options))
    if options.model is None:
        options = options.model_copy(update={"model": recommended_model("tools")})

    model_id = client.model_id_for(options)
    if not client.registry.supports_tools(model_id):
        raise AIError(
            f'Model "{model_id}" does not support tool calling. '
            f"Use a tool-capable model such as '{recommended_model('tools')}'.",
            AIErrorCode.VALIDATION_ERROR,
            model=model_id,
        )

    if max_iterations is None:
        max_iterations = client.config.tools.max_iterations
    if max_iterations < 1:
        raise AIError("max_iterations must be at least 1", AIErrorCode.VALIDATION_ERROR)
    return options, model_id, max_iterations


async def _run_rounds(
    client: DispatchClient,
    rounds: _Rounds,
    registry: ToolRegistry,
    options: DispatchOptions,
    model_id: str,
    context: ToolContext,
    max_iterations: int,
    observers: Sequence[ToolObserver],
) -> None:
    executor = ToolExecutor(registry)
    schemas = registry.to_schema_list()
    conversation = rounds.conversation

    while rounds.iterations < max_iterations:
        if context.cancelled:
            logger.info(f"Tool loop for {model_id} cancelled after {rounds.iterations} round(s)")
            return
        rounds.iterations += 1

        outcome = await client.complete(conversation, options, tools=schemas)
        rounds.usage = _add_usage(rounds.usage, client.usage_for(outcome, conversation))
        completion = outcome.completion
        rounds.text = completion.text

        if not completion.tool_calls:
            rounds.completed = True
            return

        logger.debug(
            f"Round {rounds.iterations}: {len(completion.tool_calls)} tool call(s) "
            f"({', '.join(call.name for call in completion.tool_calls)})"
        )
        conversation.append(_assistant_tool_message(rounds.text, completion.tool_calls))
        round_results = await executor.execute_many(completion.tool_calls, context, observers)
        rounds.results.extend(round_results)
        conversation.extend(result.to_message() for result in round_results)

    logger.warning(f"Tool loop for {model_id} stopped at max_iterations={max_iterations}")


async def chat_with_tools(
    client: DispatchClient,
    messages: Iterable[MessageLike],
    tools: ToolRegistry | Iterable[ToolDefinition],
    options: OptionsLike = None,
    *,
    context: ToolContext | None = None,
    max_iterations: int | None = None,
    observers: Sequence[ToolObserver] = (),
) -> RunWithToolsResult:
    """Let the model call tools until it answers or the round budget runs out.

    Each round is one model call. Tool calls from a round run concurrently
    and their results go back to the model in the order they were requested.

    Raises:
        AIError: ``VALIDATION_ERROR`` before any network call if the model
            cannot call tools; transport errors from the dispatch client
    """
    options, model_id, max_iterations = _prepare(client, options, max_iterations)
    registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
    rounds = _Rounds(client.to_wire_messages(messages, options.system_prompt))

    start = time.perf_counter()
    await _run_rounds(
        client, rounds, registry, options, model_id,
        context or ToolContext(), max_iterations, observers,
    )

    thinking, content = extract_thinking(rounds.text)
    return RunWithToolsResult(
        response=content,
        thinking=thinking,
        tool_calls=rounds.results,
        iterations=rounds.iterations,
        completed=rounds.completed,
        duration_ms=(time.perf_counter() - start) * 1000,
        model=model_id,
        usage=rounds.usage,
    )


async def run_with_tools(
    client: DispatchClient,
    prompt: str,
    tools: ToolRegistry | Iterable[ToolDefinition],
    options: OptionsLike = None,
    *,
    context: ToolContext | None = None,
    max_iterations: int | None = None,
    observers: Sequence[ToolObserver] = (),
) -> RunWithToolsResult:
    return await chat_with_tools(
        client,
        [{"role": "user", "content": prompt}],
        tools,
        options,
        context=context,
        max_iterations=max_iterations,
        observers=observers,
    )


def stream_with_tools(
    client: DispatchClient,
    prompt: str,
    tools: ToolRegistry | Iterable[ToolDefinition],
    options: OptionsLike = None,
    *,
    context: ToolContext | None = None,
    max_iterations: int | None = None,
    observers: Sequence[ToolObserver] = (),
) -> AsyncIterator[StreamEvent]:
    """Run the tool rounds, then stream the final answer as events.

    Tool rounds are not streamed. When they end, the answer is requested once
    more without tools and streamed through the dispatch client, so the
    events match ``chat_stream``.

    Capability checks raise here, before any network call. Failures after
    that arrive as a final ``ErrorEvent``.
    """
    options, model_id, max_iterations = _prepare(client, options, max_iterations)
    registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
    rounds = _Rounds(
        client.to_wire_messages([{"role": "user", "content": prompt}], options.system_prompt)
    )

    async def events() -> AsyncIterator[StreamEvent]:
        try:
            await _run_rounds(
                client, rounds, registry, options, model_id,
                context or ToolContext(), max_iterations, observers,
            )
            final = client.stream_messages(rounds.conversation, options)
        except AIError as e:
            logger.error(f"Tool rounds for {model_id} failed: {e}")
            yield ErrorEvent(message=e.message)
            return

        logger.debug(
            f"Streaming final answer for {model_id} after {rounds.iterations} round(s), "
            f"{len(rounds.results)} tool call(s)"
        )
        async with aclosing(final) as stream:
            async for event in stream:
                yield event

    return events()
