"""Central registry for tool lookup and validated dispatch.

execute() is the single entry point used by the MCP server: it looks up the
tool, validates the raw parameters against the tool's schema, and runs it.
Unknown tools, invalid parameters and unexpected exceptions come back as a
rendered ToolError with is_error set, never as a raised exception.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, ValidationError

from markji_mcp.foundation.core import BaseTool, ToolOutput
from markji_mcp.foundation.errors import ErrorCode, ToolError
from markji_mcp.runtime.observability import get_logger, log_context

log = get_logger("markji_mcp.registry")


def format_validation_error(exc: ValidationError) -> str:
    """One line per validation problem: 'field.path: message'."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in exc.errors()
    )


class ToolRegistry:
    """Registry of tool instances keyed by name.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(GetCardsTool(client))
        >>> output = await registry.execute("getCards", {"deckId": "d1", "cardIds": ["c1"]})
    """

    __slots__ = ("_tools",)

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool[BaseModel]] = {}

    def register(self, tool: BaseTool[Any]) -> None:
        name = tool.metadata.name
        if name in self._tools:
            raise ValueError(f"Tool '{name}' already registered.")
        self._tools[name] = tool

    def get(self, name: str) -> BaseTool[BaseModel] | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[BaseTool[BaseModel]]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(self, name: str, params: dict[str, Any]) -> ToolOutput:
        """Validate params and run the named tool."""
        tool = self._tools.get(name)
        if tool is None:
            return ToolOutput.error(ToolError.create(
                name, f"Tool '{name}' not found", ErrorCode.NOT_FOUND, recoverable=False,
            ).render())

        try:
            validated = tool.params_schema.model_validate(params)
        except ValidationError as e:
            return ToolOutput.error(ToolError.create(
                name, f"Invalid parameters: {format_validation_error(e)}",
                ErrorCode.INVALID_PARAMS, recoverable=False,
            ).render())

        with log_context(tool=name):
            try:
                output = await tool.arun(validated)
            except Exception as e:
                log.exception("tool raised", error=str(e))
                return ToolOutput.error(ToolError.from_exception(name, e, "Execution failed", include_trace=False).render())
        if output.is_error:
            log.info("tool returned error", text=output.text[:200])
        return output
