"""Edge AI dispatch: model routing, retries, tool calling and SSE streaming."""

from edge_ai_dispatch.agent.dispatch import DispatchClient
from edge_ai_dispatch.agent.models import (
    AIResult,
    ChatMessage,
    DispatchOptions,
    JSONResult,
)
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.registry import MODEL_REGISTRY, recommended_model
from edge_ai_dispatch.providers.resolver import resolve
from edge_ai_dispatch.streaming.transformer import DoneEvent, ErrorEvent, TextEvent
from edge_ai_dispatch.tools.loop import (
    RunWithToolsResult,
    chat_with_tools,
    run_with_tools,
    stream_with_tools,
)
from edge_ai_dispatch.tools.registry import ToolRegistry, define_tool

__version__ = "0.1.0"

__all__ = [
    "AIError",
    "AIErrorCode",
    "AIResult",
    "ChatMessage",
    "DispatchClient",
    "DispatchOptions",
    "DoneEvent",
    "ErrorEvent",
    "JSONResult",
    "MODEL_REGISTRY",
    "RunWithToolsResult",
    "TextEvent",
    "ToolRegistry",
    "__version__",
    "chat_with_tools",
    "define_tool",
    "recommended_model",
    "resolve",
    "run_with_tools",
    "stream_with_tools",
]
