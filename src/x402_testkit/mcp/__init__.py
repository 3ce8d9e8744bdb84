"""Model Context Protocol (MCP) server exposing x402-testkit to agents.

JSON-RPC 2.0 over stdio with initialize, tools/list and tools/call.

Example:
    >>> from x402_testkit.mcp import build_server
    >>> server = build_server()
    >>> server.tool_names
    ['x402__testing_run_suite', 'x402__testing_check_compliance']
    >>> # asyncio.run(server.run_stdio())
"""

from x402_testkit.mcp.protocol import (
    MCP_PROTOCOL_VERSION,
    CallToolRequestParams,
    CallToolResult,
    InitializeResult,
    JSONRPCError,
    JSONRPCRequest,
    JSONRPCResponse,
    ListToolsResult,
    TextContent,
    Tool,
)
from x402_testkit.mcp.server import MCPServer
from x402_testkit.mcp.server_runner import build_server
from x402_testkit.mcp.tools import check_compliance, run_suite

__all__ = [
    "MCPServer",
    "MCP_PROTOCOL_VERSION",
    "CallToolRequestParams",
    "CallToolResult",
    "InitializeResult",
    "JSONRPCError",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "ListToolsResult",
    "TextContent",
    "Tool",
    "build_server",
    "check_compliance",
    "run_suite",
]
