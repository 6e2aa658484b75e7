"""MCP server for the Markji tools.

Every registry tool is exposed through FastMCP. Parameters are advertised
with the camelCase names of the tool's schema; validation and execution go
through ToolRegistry.execute, so MCP clients see exactly the text the tool
rendered. Outputs flagged as errors are raised as FastMCP ToolErrors, which
the protocol reports with isError set.

Example:
    >>> registry = build_registry(MarkjiClient(token))
    >>> serve_mcp(registry, transport="stdio")
"""

from __future__ import annotations

import inspect
import sys
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Annotated, Any, Callable, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError as MCPToolError
from pydantic import BaseModel, Field

from markji_mcp.foundation.config import get_settings
from markji_mcp.foundation.errors import ConfigurationError
from markji_mcp.runtime.observability import configure_logging, get_logger

if TYPE_CHECKING:
    from markji_mcp.foundation.core import BaseTool, ToolOutput
    from markji_mcp.foundation.registry import ToolRegistry

Transport = Literal["stdio", "sse", "streamable-http"]

log = get_logger("markji_mcp.server")


# ═══════════════════════════════════════════════════════════════════════════════
# Server Base
# ═══════════════════════════════════════════════════════════════════════════════


class ToolServer(ABC):
    """Transport-independent view of a registry: listing and invocation."""

    __slots__ = ("_name", "_registry")

    def __init__(self, name: str, registry: ToolRegistry) -> None:
        self._name = name
        self._registry = registry

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @abstractmethod
    def run(self, **kwargs: object) -> None:
        """Serve until the transport closes."""

    def list_tools(self) -> list[dict[str, object]]:
        """All enabled tools with their camelCase JSON schemas."""
        return [
            {
                "name": tool.metadata.name,
                "description": tool.metadata.description,
                "category": tool.metadata.category,
                "parameters": tool.params_schema.model_json_schema(by_alias=True),
            }
            for tool in self._registry
            if tool.metadata.enabled
        ]

    async def invoke(self, tool_name: str, params: dict[str, Any]) -> ToolOutput:
        """Invoke a tool by name. Failures come back as error outputs, never raised."""
        return await self._registry.execute(tool_name, params)


# ═══════════════════════════════════════════════════════════════════════════════
# FastMCP Adapter
# ═══════════════════════════════════════════════════════════════════════════════


def tool_signature(schema: type[BaseModel]) -> tuple[inspect.Signature, dict[str, Any]]:
    """Keyword-only signature and annotations mirroring a params schema.

    FastMCP derives a tool's input schema from its handler's signature, so
    each schema field becomes one parameter named by its alias.
    """
    params: list[inspect.Parameter] = []
    annotations: dict[str, Any] = {}
    for field_name, info in schema.model_fields.items():
        name = info.alias or field_name
        annotation = Annotated[info.annotation, Field(description=info.description)]
        default = inspect.Parameter.empty if info.is_required() else info.get_default(call_default_factory=True)
        params.append(inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, default=default, annotation=annotation))
        annotations[name] = annotation
    annotations["return"] = str
    return inspect.Signature(params, return_annotation=str), annotations


class MCPServer(ToolServer):
    """FastMCP-backed server.

    Each tool becomes one FastMCP tool whose handler forwards to the registry.
    """

    __slots__ = ("_mcp",)

    def __init__(self, name: str, registry: ToolRegistry) -> None:
        super().__init__(name, registry)
        self._mcp = FastMCP(self._name)
        self._register_tools()

    def _handler(self, tool: BaseTool[Any]) -> Callable[..., Any]:
        tool_name = tool.metadata.name

        async def handler(**kwargs: Any) -> str:
            output = await self.invoke(tool_name, {k: v for k, v in kwargs.items() if v is not None})
            if output.is_error:
                raise MCPToolError(output.text)
            return output.text

        handler.__name__ = tool_name
        handler.__doc__ = tool.metadata.description
        handler.__signature__, handler.__annotations__ = tool_signature(tool.params_schema)  # type: ignore[attr-defined]
        return handler

    def _register_tools(self) -> None:
        for tool in self._registry:
            if not tool.metadata.enabled:
                continue
            self._mcp.tool(name=tool.metadata.name, description=tool.metadata.description)(self._handler(tool))
        log.debug("tools registered", server=self._name, count=len(self._registry))

    def run(
        self,
        transport: Transport = "stdio",
        *,
        host: str = "127.0.0.1",
        port: int = 8080,
    ) -> None:
        """Blocks. host and port only apply to the HTTP transports."""
        log.info("server starting", server=self._name, transport=transport, tools=len(self._registry))
        if transport == "stdio":
            self._mcp.run()
        else:
            self._mcp.run(transport=transport, host=host, port=port)

    @property
    def fastmcp(self) -> FastMCP:
        return self._mcp


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Points
# ═══════════════════════════════════════════════════════════════════════════════


def create_mcp_server(registry: ToolRegistry, name: str = "markji-server") -> MCPServer:
    return MCPServer(name, registry)


def serve_mcp(
    registry: ToolRegistry,
    *,
    name: str = "markji-server",
    transport: Transport = "stdio",
    host: str = "127.0.0.1",
    port: int = 8080,
) -> None:
    """Build the server and run it in the foreground."""
    create_mcp_server(registry, name).run(transport=transport, host=host, port=port)


def main() -> None:
    """Console entry point: load settings, build the registry, serve."""
    from markji_mcp.io.client import MarkjiClient
    from markji_mcp.runtime.retry import RetryPolicy
    from markji_mcp.tools import build_registry

    settings = get_settings()
    try:
        client = MarkjiClient.from_settings(settings)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.logging.format, settings.logging.level)
    registry = build_registry(client, RetryPolicy.from_settings(settings.retry))
    serve_mcp(
        registry,
        name=settings.server.name,
        transport=settings.server.transport,
        host=settings.server.host,
        port=settings.server.port,
    )
