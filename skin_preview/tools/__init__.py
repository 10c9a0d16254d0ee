"""MCP tools for skin_preview."""
