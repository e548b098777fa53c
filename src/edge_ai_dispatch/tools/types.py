"""Shared data structures for tool registration and execution."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from edge_ai_dispatch.agent.postprocess import safe_stringify

JSONSchema = dict[str, Any]


class ToolSource(str, Enum):
    """Where a tool implementation comes from."""

    LOCAL = "local"
    MCP = "mcp"
    OPENAPI = "openapi"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ToolMetadata:
    version: str | None = None
    source: ToolSource = ToolSource.LOCAL
    mcp_server_url: str | None = None
    tags: tuple[str, ...] = ()
    has_side_effects: bool = False
    estimated_cost_usd: float | None = None


@dataclass
class ToolContext:
    """Request-scoped values handed to a tool handler at call time.

    ``cancel_event`` is a best-effort signal: handlers should check
    ``cancelled`` between steps, nothing forces them to stop.
    """

    user_id: str | None = None
    request_id: str | None = None
    env: Mapping[str, Any] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


ToolHandler = Callable[[dict[str, Any], ToolContext], Any | Awaitable[Any]]


@dataclass
class ToolDefinition:
    """A callable tool as exposed to the model."""

    name: str
    description: str
    handler: ToolHandler
    parameters: JSONSchema | None = None
    args_model: type[BaseModel] | None = None
    metadata: ToolMetadata = field(default_factory=ToolMetadata)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must not be empty")
        if self.parameters is None and self.args_model is not None:
            self.parameters = self.args_model.model_json_schema()

    def to_schema(self) -> dict[str, Any]:
        """Function-calling schema; ``parameters`` is forwarded as given."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
                if self.parameters is not None
                else {"type": "object", "properties": {}},
            },
        }


def _call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


class ToolCallRequest(BaseModel):
    """A single tool invocation requested by the model."""

    id: str = Field(default_factory=_call_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    argument_error: str | None = Field(
        default=None, description="Set when the model sent arguments that are not a JSON object"
    )


class ToolCallResult(BaseModel):
    """Outcome of one tool invocation."""

    id: str
    name: str
    success: bool
    result: Any = None
    error: str | None = None
    duration_ms: float = Field(ge=0)

    def to_message(self) -> dict[str, Any]:
        """Conversation message carrying this result back to the model."""
        content = (
            safe_stringify(self.result)
            if self.success
            else safe_stringify({"error": self.error})
        )
        return {
            "role": "tool",
            "tool_call_id": self.id,
            "name": self.name,
            "content": content,
        }
