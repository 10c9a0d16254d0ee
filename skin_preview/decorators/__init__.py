"""Decorators applied to MCP tools at registration time."""
