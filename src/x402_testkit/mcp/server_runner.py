"""Entry point to run the x402-testkit MCP server over stdio.

Example:
    python -m x402_testkit.mcp.server_runner

Then send JSON-RPC messages (one per line) to stdin; read responses from stdout.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys

from x402_testkit import __version__
from x402_testkit.mcp.server import MCPServer
from x402_testkit.mcp.tools import (
    CHECK_COMPLIANCE_SCHEMA,
    CHECK_COMPLIANCE_TOOL,
    RUN_SUITE_SCHEMA,
    RUN_SUITE_TOOL,
    check_compliance,
    run_suite,
)

SERVER_NAME = "x402-testkit"


def build_server() -> MCPServer:
    """MCPServer with the suite runner and compliance check tools registered."""
    server = MCPServer(
        name=SERVER_NAME,
        version=__version__,
        title="x402 compliance testing",
        description="Runs x402 test suites and endpoint compliance checks",
    )
    server.register_tool(
        RUN_SUITE_TOOL,
        run_suite,
        RUN_SUITE_SCHEMA,
        description="Execute YAML test suite for x402 payment protocol testing",
        title="Run test suite",
    )
    server.register_tool(
        CHECK_COMPLIANCE_TOOL,
        check_compliance,
        CHECK_COMPLIANCE_SCHEMA,
        description="Check an endpoint's 402 response and invoice for x402 compliance",
        title="Check compliance",
    )
    return server


def main() -> None:
    """Run the MCP server on stdio until stdin closes."""
    server = build_server()
    with contextlib.suppress(BrokenPipeError, KeyboardInterrupt):
        asyncio.run(server.run_stdio())
    sys.exit(0)


if __name__ == "__main__":
    main()
