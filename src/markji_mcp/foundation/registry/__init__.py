"""Tool registry."""

from .registry import ToolRegistry, format_validation_error

__all__ = ["ToolRegistry", "format_validation_error"]
