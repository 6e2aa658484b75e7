"""MCP (Model Context Protocol) server adapter.

Requires: fastmcp
"""

from .server import MCPServer, ToolServer, create_mcp_server, main, serve_mcp, tool_signature

__all__ = ["ToolServer", "MCPServer", "create_mcp_server", "serve_mcp", "tool_signature", "main"]
