"""Fixtures for MCP integration tests.

The server is exercised through a real MCP client session connected over
in-memory streams, so tool registration and argument handling go through the
protocol exactly as they would for stdio or HTTP clients.
"""

import json
from typing import Any, Dict

import pytest
from mcp import types
from mcp.shared.memory import create_connected_server_and_client_session

from skin_preview.server.app import create_mcp_server


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def mcp_session():
    """Yield a connected (session, transport) pair."""
    server = create_mcp_server()
    async with create_connected_server_and_client_session(server._mcp_server) as session:
        yield session, "memory"


def extract_text_content(result: types.CallToolResult) -> str:
    """Concatenate the text parts of a tool result."""
    return "".join(item.text for item in result.content if isinstance(item, types.TextContent))


def extract_json_content(result: types.CallToolResult) -> Dict[str, Any]:
    """Decode a tool result whose text is a JSON object."""
    return json.loads(extract_text_content(result))
