"""Core tool abstractions: BaseTool, ToolMetadata, and ToolOutput.

A tool is one agent-callable operation against the Markji API. Tools are
defined by subclassing BaseTool with a typed parameter schema and
implementing _run. Batch tools hand their items to run_batch and render the
report; single-call tools go through the same retry policy via _call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Generic, TypeVar

import orjson
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from markji_mcp.foundation.errors import MarkjiError
from markji_mcp.runtime.batch import BatchConfig, Scheduling
from markji_mcp.runtime.observability import get_logger
from markji_mcp.runtime.retry import DEFAULT_POLICY, RetryPolicy, execute_with_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from markji_mcp.io.client import MarkjiClient

T = TypeVar("T")

log = get_logger("markji_mcp.tools")


class ToolMetadata(BaseModel):
    """Metadata describing a tool for discovery by agents.

    Attributes:
        name: Unique identifier (camelCase, e.g., "addTextCards")
        description: What the tool does (shown to the LLM for selection)
        category: Grouping category ("decks", "chapters", "cards")
        enabled: Whether tool is currently active
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=r"^[a-z][a-zA-Z0-9_]*$")
    description: str = Field(..., min_length=10)
    category: str = Field(default="general")
    enabled: bool = Field(default=True)


class ToolOutput(BaseModel):
    """Text returned to the agent, flagged as an error when anything failed."""

    model_config = ConfigDict(frozen=True)

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> ToolOutput:
        return cls(text=text)

    @classmethod
    def error(cls, text: str) -> ToolOutput:
        return cls(text=text, is_error=True)

    @classmethod
    def as_json(cls, payload: Any, *, is_error: bool = False) -> ToolOutput:
        """Pretty-printed JSON payload (two-space indent, UTF-8 kept as-is)."""
        return cls(text=orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode(), is_error=is_error)


class ToolParams(BaseModel):
    """Base for parameter schemas. Fields are snake_case, accepted and advertised as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class BatchParams(ToolParams):
    """Base for batch tools: adds a per-call scheduling override."""

    scheduling: Scheduling | None = Field(
        default=None,
        description="'serial' or 'concurrent'. Defaults to the tool's own scheduling.",
    )


# Type variable for tool parameter schemas
TParams = TypeVar("TParams", bound=BaseModel)


class BaseTool(ABC, Generic[TParams]):
    """Abstract base class for all Markji tools.

    Subclasses must:
    - Define `metadata` class variable with ToolMetadata
    - Define `params_schema` class variable with the Pydantic model type
    - Implement `async _run(params)` returning a ToolOutput

    Optional:
    - `failure_prefix`: prefix for whole-call failures ("Failed to get cards")
    - `default_scheduling`: scheduling for batch tools when the caller sets none

    MarkjiError escaping _run (a failed setup listing, a failed single call)
    becomes an error output "{failure_prefix}: {message}".

    Example:
        >>> class ListFoldersTool(BaseTool[EmptyParams]):
        ...     metadata = ToolMetadata(name="listFolders", description="List all folders")
        ...     params_schema = EmptyParams
        ...     failure_prefix = "Failed to list folders"
        ...
        ...     async def _run(self, params: EmptyParams) -> ToolOutput:
        ...         folders = await self._call(self.client.list_folders, "list folders")
        ...         return ToolOutput.as_json([{"id": f.id, "name": f.name} for f in folders])
    """

    metadata: ClassVar[ToolMetadata]
    params_schema: ClassVar[type[BaseModel]]
    failure_prefix: ClassVar[str] = "Operation failed"
    default_scheduling: ClassVar[Scheduling] = Scheduling.CONCURRENT

    def __init__(
        self,
        client: MarkjiClient,
        policy: RetryPolicy = DEFAULT_POLICY,
        *,
        concurrency: int | None = None,
    ) -> None:
        self.client = client
        self.policy = policy
        self.concurrency = concurrency

    @property
    def name(self) -> str:
        return self.metadata.name

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    async def _call(self, operation: Callable[[], Awaitable[T]], what: str) -> T:
        """Run one remote call under the tool's retry policy."""
        return await execute_with_retry(operation, self.policy, f"{self.metadata.name}:{what}")

    def _batch_config(self, scheduling: Scheduling | None = None) -> BatchConfig:
        return BatchConfig(
            scheduling=scheduling or self.default_scheduling,
            concurrency=self.concurrency,
            retry=self.policy,
        )

    # ─────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────

    def _failure_prefix(self, params: TParams) -> str:
        return self.failure_prefix

    @abstractmethod
    async def _run(self, params: TParams) -> ToolOutput:
        """Tool implementation."""
        ...

    async def arun(self, params: TParams) -> ToolOutput:
        """Execute the tool, turning whole-call failures into an error output."""
        try:
            return await self._run(params)
        except MarkjiError as e:
            log.warning("tool failed", tool=self.metadata.name, code=e.code.value, error=e.message)
            return ToolOutput.error(f"{self._failure_prefix(params)}: {e.message}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.metadata.name!r})"


class EmptyParams(ToolParams):
    """Parameter schema for tools with no inputs."""
    pass
