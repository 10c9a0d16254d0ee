"""MCP server package initialization"""

from skin_preview.server.app import create_mcp_server, register_tools, server

__all__ = ["create_mcp_server", "register_tools", "server"]
