"""Validates and runs tool calls requested by a model."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from edge_ai_dispatch.tools.registry import ToolRegistry
from edge_ai_dispatch.tools.types import ToolCallRequest, ToolCallResult, ToolContext
from edge_ai_dispatch.tools.validation import ArgumentValidator, format_validation_error
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("tools.executor")


@runtime_checkable
class ToolObserver(Protocol):
    """Receives a notification before and after every single tool invocation.

    Methods may be plain or async. A failing observer is logged and ignored.
    """

    def on_tool_call(self, call: ToolCallRequest) -> Any: ...

    def on_tool_result(self, result: ToolCallResult) -> Any: ...


@dataclass
class CallbackObserver:
    """Adapts plain callbacks to ``ToolObserver``."""

    on_call: Callable[[ToolCallRequest], Any] | None = None
    on_result: Callable[[ToolCallResult], Any] | None = None

    def on_tool_call(self, call: ToolCallRequest) -> Any:
        if self.on_call is not None:
            return self.on_call(call)
        return None

    def on_tool_result(self, result: ToolCallResult) -> Any:
        if self.on_result is not None:
            return self.on_result(result)
        return None


async def _notify(observers: Sequence[ToolObserver], hook: str, payload: Any) -> None:
    for observer in observers:
        try:
            outcome = getattr(observer, hook)(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Tool observer {type(observer).__name__}.{hook} failed: {e}")


class ToolExecutor:
    """Runs tool calls against a registry.

    ``execute`` never raises: unknown tools, invalid arguments and handler
    exceptions all become failed results.
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry
        self._validator = ArgumentValidator()

    @staticmethod
    def _failure(call: ToolCallRequest, error: str, duration_ms: float = 0.0) -> ToolCallResult:
        return ToolCallResult(
            id=call.id,
            name=call.name,
            success=False,
            error=error,
            duration_ms=duration_ms,
        )

    async def execute(
        self, call: ToolCallRequest, context: ToolContext | None = None
    ) -> ToolCallResult:
        context = context or ToolContext()
        tool = self.registry.get(call.name)
        if tool is None:
            return self._failure(call, f"Tool not found: {call.name}")

        if call.argument_error:
            return self._failure(call, f"Validation error: {call.argument_error}")
        try:
            arguments = self._validator.validate(tool, call.arguments)
        except ValidationError as e:
            return self._failure(call, f"Validation error: {format_validation_error(e)}")
        except Exception as e:
            logger.warning(f"Could not build argument model for tool '{call.name}': {e}")
            return self._failure(call, f"Invalid tool schema: {e}")

        start = time.perf_counter()
        try:
            if inspect.iscoroutinefunction(tool.handler):
                result = await tool.handler(arguments, context)
            else:
                result = await asyncio.to_thread(tool.handler, arguments, context)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning(f"Tool '{call.name}' failed after {duration_ms:.1f}ms: {e}")
            return self._failure(call, str(e) or type(e).__name__, duration_ms)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Tool '{call.name}' succeeded in {duration_ms:.1f}ms")
        return ToolCallResult(
            id=call.id,
            name=call.name,
            success=True,
            result=result,
            duration_ms=duration_ms,
        )

    async def execute_many(
        self,
        calls: Iterable[ToolCallRequest],
        context: ToolContext | None = None,
        observers: Sequence[ToolObserver] = (),
    ) -> list[ToolCallResult]:
        """Run sibling calls concurrently; results come back in call order."""
        context = context or ToolContext()

        async def run_one(call: ToolCallRequest) -> ToolCallResult:
            await _notify(observers, "on_tool_call", call)
            result = await self.execute(call, context)
            await _notify(observers, "on_tool_result", result)
            return result

        return list(await asyncio.gather(*(run_one(call) for call in calls)))
