"""Expose Model Context Protocol (MCP) server tools as registry tools."""

from __future__ import annotations

import json
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from edge_ai_dispatch.core.exceptions import ToolRegistryError
from edge_ai_dispatch.tools.registry import ToolRegistry
from edge_ai_dispatch.tools.types import (
    JSONSchema,
    ToolContext,
    ToolDefinition,
    ToolMetadata,
    ToolSource,
)
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("tools.mcp_bridge")


@runtime_checkable
class MCPClient(Protocol):
    async def list_tools(self) -> list[dict[str, Any]]:
        """Return MCP tool definitions: ``{name, description, inputSchema}``."""
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Return an MCP result: ``{content: [{type, text?}]}``."""
        ...


@dataclass(frozen=True)
class MCPBridgeOptions:
    name_prefix: str = ""
    tags: tuple[str, ...] = ()
    server_url: str | None = None


def _result_value(result: Mapping[str, Any]) -> Any:
    """Join text content; decode it when it looks like JSON."""
    text = "\n".join(
        str(part.get("text", ""))
        for part in result.get("content") or []
        if part.get("type") == "text"
    )
    if text.startswith(("{", "[")):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def mcp_tool_to_tool(
    mcp_tool: Mapping[str, Any],
    client: MCPClient,
    options: MCPBridgeOptions | None = None,
) -> ToolDefinition:
    options = options or MCPBridgeOptions()
    remote_name = mcp_tool["name"]

    async def handler(arguments: dict[str, Any], _context: ToolContext) -> Any:
        result = await client.call_tool(remote_name, arguments)
        if result.get("isError"):
            raise ToolRegistryError(
                f"MCP tool '{remote_name}' failed: {_result_value(result)}"
            )
        return _result_value(result)

    return ToolDefinition(
        name=f"{options.name_prefix}{remote_name}",
        description=mcp_tool.get("description", ""),
        handler=handler,
        parameters=mcp_tool.get("inputSchema") or {"type": "object", "properties": {}},
        metadata=ToolMetadata(
            source=ToolSource.MCP,
            mcp_server_url=options.server_url,
            tags=options.tags,
        ),
    )


async def create_mcp_tool_registry(
    client: MCPClient, options: MCPBridgeOptions | None = None
) -> ToolRegistry:
    registry = ToolRegistry()
    for mcp_tool in await client.list_tools():
        registry.register(mcp_tool_to_tool(mcp_tool, client, options))
    logger.info(f"Loaded {len(registry)} MCP tool(s)")
    return registry


async def create_mcp_tool_registry_from_many(
    clients: Iterable[tuple[MCPClient, MCPBridgeOptions | None]],
) -> ToolRegistry:
    registry = ToolRegistry()
    for client, options in clients:
        for mcp_tool in await client.list_tools():
            registry.register(mcp_tool_to_tool(mcp_tool, client, options))
    return registry


@dataclass
class MCPServerToolConfig:
    name: str
    description: str
    input_schema: JSONSchema
    handler: Callable[[dict[str, Any]], Awaitable[Any]]


def create_mcp_server_adapter(
    tool_configs: Iterable[MCPServerToolConfig],
    options: MCPBridgeOptions | None = None,
) -> ToolRegistry:
    """Register in-process MCP server handlers directly, without a transport."""
    options = options or MCPBridgeOptions()
    registry = ToolRegistry()
    for config in tool_configs:

        async def handler(
            arguments: dict[str, Any],
            _context: ToolContext,
            _call: Callable[[dict[str, Any]], Awaitable[Any]] = config.handler,
        ) -> Any:
            return await _call(arguments)

        registry.register(
            ToolDefinition(
                name=f"{options.name_prefix}{config.name}",
                description=config.description,
                handler=handler,
                parameters=config.input_schema,
                metadata=ToolMetadata(
                    source=ToolSource.MCP,
                    mcp_server_url=options.server_url,
                    tags=options.tags,
                ),
            )
        )
    return registry


class LocalMCPClient:
    """Wraps an in-process server object offering ``list_tools``/``call_tool``."""

    def __init__(self, server: MCPClient):
        self.server = server

    async def list_tools(self) -> list[dict[str, Any]]:
        return await self.server.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        return await self.server.call_tool(name, arguments)


@dataclass
class HTTPMCPClient:
    """JSON-RPC client for an MCP server's HTTP ``/message`` endpoint."""

    base_url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    http_client: httpx.AsyncClient | None = None

    @property
    def message_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/message"

    @staticmethod
    def _request_body(method: str, params: dict[str, Any] | None) -> dict[str, Any]:
        body: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": str(uuid.uuid4())}
        if params is not None:
            body["params"] = params
        return body

    async def _send(self, body: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(
                self.message_url, json=body, headers=headers, timeout=self.timeout
            )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.message_url, json=body, headers=headers)

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        if response.is_error:
            raise ToolRegistryError(f"MCP request failed: {response.status_code}")
        data = response.json()
        if data.get("error"):
            raise ToolRegistryError(f"MCP error: {data['error'].get('message')}")
        return data.get("result") or {}

    async def _rpc(self, method: str, params: dict[str, Any] | None = None) -> Any:
        headers = {"Content-Type": "application/json", **self.headers}
        response = await self._send(self._request_body(method, params), headers)
        return self._unwrap(response)

    async def list_tools(self) -> list[dict[str, Any]]:
        result = await self._rpc("tools/list")
        return list(result.get("tools") or [])

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        return await self._rpc("tools/call", {"name": name, "arguments": arguments})


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


@dataclass(kw_only=True)
class OAuthHTTPMCPClient(HTTPMCPClient):
    """``HTTPMCPClient`` that sends a bearer token and refreshes it when needed.

    A refresh happens when ``get_access_token`` has nothing to offer, and once
    more after a 401, in which case the request is retried a single time.
    ``on_token_refreshed`` receives every new token set so callers can persist it.
    """

    get_access_token: Callable[[], Awaitable[str | None]]
    refresh_token: Callable[[], Awaitable[OAuthTokens | None]] | None = None
    on_token_refreshed: Callable[[OAuthTokens], Awaitable[None]] | None = None

    async def _refresh(self) -> OAuthTokens | None:
        if self.refresh_token is None:
            return None
        tokens = await self.refresh_token()
        if tokens is None:
            logger.warning(f"Token refresh for MCP server {self.base_url} returned nothing")
            return None
        logger.info(f"Refreshed access token for MCP server {self.base_url}")
        if self.on_token_refreshed is not None:
            await self.on_token_refreshed(tokens)
        return tokens

    def _auth_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
            **self.headers,
        }

    async def _rpc(self, method: str, params: dict[str, Any] | None = None) -> Any:
        body = self._request_body(method, params)

        access_token = await self.get_access_token()
        if not access_token:
            tokens = await self._refresh()
            access_token = tokens.access_token if tokens else None
        if not access_token:
            raise ToolRegistryError("No access token available")

        response = await self._send(body, self._auth_headers(access_token))
        if response.status_code == 401 and self.refresh_token is not None:
            tokens = await self._refresh()
            if tokens is not None:
                response = await self._send(body, self._auth_headers(tokens.access_token))
        return self._unwrap(response)
