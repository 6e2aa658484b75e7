"""Markji tools exposed to agents.

build_registry() instantiates every tool against one client and retry policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from markji_mcp.foundation.core import BaseTool
from markji_mcp.foundation.registry import ToolRegistry
from markji_mcp.runtime.retry import DEFAULT_POLICY, RetryPolicy

from .cards import (
    AddImageCardTool,
    AddTextCardsTool,
    BatchAddCardsToChaptersTool,
    BatchMoveCardsTool,
    BatchUpdateCardsTool,
    DeleteCardsTool,
    GetCardsTool,
    MoveCardsToChapterTool,
    UpdateCardTool,
)
from .chapters import AddChaptersTool, ListChaptersTool
from .decks import CreateDeckTool, ListDecksTool, ListFoldersTool

if TYPE_CHECKING:
    from markji_mcp.io.client import MarkjiClient

ALL_TOOLS: tuple[type[BaseTool], ...] = (
    ListDecksTool,
    ListFoldersTool,
    CreateDeckTool,
    AddChaptersTool,
    ListChaptersTool,
    AddTextCardsTool,
    AddImageCardTool,
    GetCardsTool,
    UpdateCardTool,
    BatchUpdateCardsTool,
    DeleteCardsTool,
    MoveCardsToChapterTool,
    BatchMoveCardsTool,
    BatchAddCardsToChaptersTool,
)


def build_registry(
    client: MarkjiClient,
    policy: RetryPolicy = DEFAULT_POLICY,
    *,
    concurrency: int | None = None,
) -> ToolRegistry:
    """Registry holding one instance of every tool, sharing client and policy."""
    registry = ToolRegistry()
    for tool_cls in ALL_TOOLS:
        registry.register(tool_cls(client, policy, concurrency=concurrency))
    return registry


__all__ = [
    "build_registry", "ALL_TOOLS",
    "ListDecksTool", "ListFoldersTool", "CreateDeckTool",
    "AddChaptersTool", "ListChaptersTool",
    "AddTextCardsTool", "AddImageCardTool", "GetCardsTool", "UpdateCardTool", "BatchUpdateCardsTool",
    "DeleteCardsTool", "MoveCardsToChapterTool", "BatchMoveCardsTool", "BatchAddCardsToChaptersTool",
]
