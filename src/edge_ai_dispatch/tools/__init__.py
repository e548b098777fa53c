"""Tool registration, validation and execution."""

from .executor import CallbackObserver, ToolExecutor, ToolObserver
from .registry import (
    ToolRegistry,
    define_model_tool,
    define_tool,
    filter_by_source,
    filter_by_tags,
    filter_registry,
    merge_registries,
)
from .types import (
    ToolCallRequest,
    ToolCallResult,
    ToolContext,
    ToolDefinition,
    ToolMetadata,
    ToolSource,
)

__all__ = [
    "CallbackObserver",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolContext",
    "ToolDefinition",
    "ToolExecutor",
    "ToolMetadata",
    "ToolObserver",
    "ToolRegistry",
    "ToolSource",
    "define_model_tool",
    "define_tool",
    "filter_by_source",
    "filter_by_tags",
    "filter_registry",
    "merge_registries",
]
