"""markji_mcp - MCP server for the Markji flashcard service.

Agents manage decks, chapters and cards through fourteen tools. Bulk tools run
on a batch execution core that retries transient failures, resolves chapter
names to ids (creating missing chapters once), isolates per-item failures,
and reports every item in input order.

Quick Start:
    >>> from markji_mcp import MarkjiClient, build_registry
    >>>
    >>> client = MarkjiClient(token)
    >>> registry = build_registry(client)
    >>> output = await registry.execute("addChapters", {"deckId": "d1", "chapters": [{"name": "History"}]})
    >>> print(output.text)

Batch Core:
    >>> from markji_mcp import BatchConfig, Scheduling, run_batch
    >>>
    >>> report = await run_batch(card_ids, fetch, BatchConfig(scheduling=Scheduling.SERIAL), key=str)
    >>> report.summary
    '2 succeeded, 1 failed'

MCP Server:
    $ MARKJI_TOKEN=... markji-mcp
"""

from markji_mcp.foundation.config import MarkjiSettings, clear_settings_cache, get_settings
from markji_mcp.foundation.core import BaseTool, ToolMetadata, ToolOutput, ToolParams
from markji_mcp.foundation.errors import (
    ErrorCode,
    ErrorTrace,
    Err,
    MarkjiError,
    Ok,
    RemoteError,
    Result,
    ToolError,
)
from markji_mcp.foundation.registry import ToolRegistry
from markji_mcp.io.client import MarkjiClient
from markji_mcp.runtime.batch import (
    BatchConfig,
    BatchReport,
    ContainerResolver,
    NamedResource,
    Outcome,
    Scheduling,
    run_batch,
)
from markji_mcp.runtime.observability import configure_logging, get_logger
from markji_mcp.runtime.retry import DEFAULT_POLICY, ExponentialBackoff, RetryPolicy, execute_with_retry
from markji_mcp.tools import build_registry

__version__ = "1.2.0"

__all__ = [
    # Config
    "MarkjiSettings", "get_settings", "clear_settings_cache",
    # Tools
    "BaseTool", "ToolMetadata", "ToolOutput", "ToolParams", "ToolRegistry", "build_registry",
    # Errors
    "ErrorCode", "MarkjiError", "RemoteError", "ToolError", "ErrorTrace", "Result", "Ok", "Err",
    # Client
    "MarkjiClient",
    # Batch core
    "run_batch", "BatchConfig", "Scheduling", "BatchReport", "Outcome", "ContainerResolver", "NamedResource",
    # Retry
    "RetryPolicy", "ExponentialBackoff", "DEFAULT_POLICY", "execute_with_retry",
    # Logging
    "configure_logging", "get_logger",
]
