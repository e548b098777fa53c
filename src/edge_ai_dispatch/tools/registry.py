"""Tool registries: independent, mutable collections of tool definitions."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from pydantic import BaseModel

from edge_ai_dispatch.tools.types import (
    JSONSchema,
    ToolDefinition,
    ToolHandler,
    ToolMetadata,
    ToolSource,
)
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("tools.registry")


class ToolRegistry:
    """Name-keyed set of tools.

    Registering an existing name replaces the tool and logs a warning.
    Instances are not synchronised: build them up front, then share them
    read-only across requests.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> ToolDefinition:
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' is already registered, overwriting")
        self._tools[tool.name] = tool
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def has(self, name: str) -> bool:
        return name in self._tools

    def clear(self) -> None:
        self._tools.clear()

    def to_schema_list(self) -> list[dict[str, Any]]:
        """Function-calling schemas for every tool, in registration order."""
        return [tool.to_schema() for tool in self._tools.values()]

    def copy(self) -> ToolRegistry:
        return ToolRegistry(self._tools.values())

    def tool(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
        parameters: JSONSchema | None = None,
        args_model: type[BaseModel] | None = None,
        metadata: ToolMetadata | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering a handler function as a tool.

        The name defaults to the function name and the description to its docstring.
        """

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(
                ToolDefinition(
                    name=name or handler.__name__,
                    description=description or (handler.__doc__ or "").strip(),
                    handler=handler,
                    parameters=parameters,
                    args_model=args_model,
                    metadata=metadata or ToolMetadata(),
                )
            )
            return handler

        return decorator

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))


def define_tool(
    name: str,
    description: str,
    handler: ToolHandler,
    parameters: JSONSchema | None = None,
    *,
    metadata: ToolMetadata | None = None,
) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        handler=handler,
        parameters=parameters,
        metadata=metadata or ToolMetadata(),
    )


def define_model_tool(
    name: str,
    description: str,
    args_model: type[BaseModel],
    handler: ToolHandler,
    *,
    metadata: ToolMetadata | None = None,
) -> ToolDefinition:
    """Define a tool whose arguments are a pydantic model.

    The model's JSON schema becomes the advertised parameters and the model
    itself validates incoming arguments.
    """
    return ToolDefinition(
        name=name,
        description=description,
        handler=handler,
        parameters=args_model.model_json_schema(),
        args_model=args_model,
        metadata=metadata or ToolMetadata(),
    )


def merge_registries(*registries: ToolRegistry) -> ToolRegistry:
    """Union of the given registries; later registries win on name collisions."""
    merged = ToolRegistry()
    for registry in registries:
        for tool in registry:
            merged._tools[tool.name] = tool
    return merged


def filter_registry(
    registry: ToolRegistry, predicate: Callable[[ToolDefinition], bool]
) -> ToolRegistry:
    return ToolRegistry(tool for tool in registry if predicate(tool))


def filter_by_tags(registry: ToolRegistry, tags: Iterable[str]) -> ToolRegistry:
    """Tools carrying at least one of ``tags``."""
    wanted = set(tags)
    return filter_registry(registry, lambda tool: bool(wanted.intersection(tool.metadata.tags)))


def filter_by_source(registry: ToolRegistry, source: ToolSource | str) -> ToolRegistry:
    source = ToolSource(source)
    return filter_registry(registry, lambda tool: tool.metadata.source == source)
