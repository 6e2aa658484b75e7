"""Tool base classes."""

from .base import BaseTool, BatchParams, EmptyParams, ToolMetadata, ToolOutput, ToolParams

__all__ = ["BaseTool", "ToolMetadata", "ToolOutput", "ToolParams", "BatchParams", "EmptyParams"]
