"""Tests for the MCP stdio server."""

from __future__ import annotations

import io
import json
from typing import Any

import pytest

from x402_testkit.mcp.protocol import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)
from x402_testkit.mcp.server import EMPTY_INPUT_SCHEMA, MCPServer
from x402_testkit.observability.logging import ENV_DEBUG

ADD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
    "required": ["a", "b"],
    "additionalProperties": False,
}


def _add(a: int, b: int) -> dict[str, Any]:
    return {"status": "ok", "sum": a + b}


async def _fail() -> dict[str, Any]:
    raise RuntimeError("database exploded")


async def _report_error() -> dict[str, Any]:
    return {"status": "error", "summary": "nothing to run"}


def _greet() -> str:
    return "hello"


@pytest.fixture
def server() -> MCPServer:
    srv = MCPServer(name="test-server", version="1.0.0", instructions="Use the tools.")
    srv.register_tool("add", _add, ADD_SCHEMA, description="Add two integers")
    srv.register_tool("fail", _fail)
    srv.register_tool("report_error", _report_error)
    srv.register_tool("greet", _greet, title="Greeting")
    return srv


async def _call(server: MCPServer, method: str, params: dict[str, Any] | None = None, rid: int = 1) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": rid, "method": method}
    if params is not None:
        message["params"] = params
    line = await server.handle_line(json.dumps(message))
    assert line is not None
    return json.loads(line)


class TestLifecycle:
    """initialize, ping and notifications."""

    @pytest.mark.asyncio
    async def test_initialize(self, server: MCPServer) -> None:
        response = await _call(server, "initialize", {"protocolVersion": "2024-11-05"})

        result = response["result"]
        assert result["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "test-server"
        assert result["instructions"] == "Use the tools."
        assert result["capabilities"]["tools"] == {"listChanged": False}

    @pytest.mark.asyncio
    async def test_initialize_without_tools_has_no_tool_capability(self) -> None:
        response = await _call(MCPServer(name="bare", version="0"), "initialize")

        assert response["result"]["capabilities"] == {}

    @pytest.mark.asyncio
    async def test_ping(self, server: MCPServer) -> None:
        response = await _call(server, "ping", rid=7)

        assert response == {"jsonrpc": "2.0", "id": 7, "result": {}}

    @pytest.mark.asyncio
    async def test_notification_gets_no_response(self, server: MCPServer) -> None:
        line = json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert await server.handle_line(line) is None


class TestProtocolErrors:
    """JSON-RPC level errors."""

    @pytest.mark.asyncio
    async def test_parse_error(self, server: MCPServer) -> None:
        response = json.loads(await server.handle_line("{not json"))

        assert response["id"] is None
        assert response["error"]["code"] == PARSE_ERROR

    @pytest.mark.asyncio
    async def test_non_object_is_parse_error(self, server: MCPServer) -> None:
        response = json.loads(await server.handle_line("[1, 2]"))

        assert response["error"]["code"] == PARSE_ERROR

    @pytest.mark.asyncio
    async def test_invalid_request(self, server: MCPServer) -> None:
        response = json.loads(await server.handle_line(json.dumps({"jsonrpc": "2.0", "id": 3})))

        assert response["id"] == 3
        assert response["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_unknown_method(self, server: MCPServer) -> None:
        response = await _call(server, "resources/list")

        assert response["error"]["code"] == METHOD_NOT_FOUND
        assert "resources/list" in response["error"]["message"]


class TestTools:
    """tools/list and tools/call."""

    @pytest.mark.asyncio
    async def test_list(self, server: MCPServer) -> None:
        response = await _call(server, "tools/list")

        tools = {t["name"]: t for t in response["result"]["tools"]}
        assert list(tools) == ["add", "fail", "report_error", "greet"]
        assert tools["add"]["inputSchema"] == ADD_SCHEMA
        assert tools["add"]["description"] == "Add two integers"
        assert tools["fail"]["inputSchema"] == EMPTY_INPUT_SCHEMA
        assert tools["greet"]["title"] == "Greeting"

    @pytest.mark.asyncio
    async def test_call_returns_structured_content(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "add", "arguments": {"a": 2, "b": 3}})

        result = response["result"]
        assert result["isError"] is False
        assert result["structuredContent"] == {"status": "ok", "sum": 5}
        assert json.loads(result["content"][0]["text"]) == {"status": "ok", "sum": 5}

    @pytest.mark.asyncio
    async def test_sync_string_tool(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "greet", "arguments": {}})

        assert response["result"]["content"][0]["text"] == "hello"

    @pytest.mark.asyncio
    async def test_schema_violation_is_invalid_params(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "add", "arguments": {"a": "two", "b": 3}})

        assert response["error"]["code"] == INVALID_PARAMS
        assert response["error"]["message"].startswith("Invalid arguments:")

    @pytest.mark.asyncio
    async def test_missing_name_is_invalid_params(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"arguments": {}})

        assert response["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "nope", "arguments": {}})

        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_status_error_sets_is_error(self, server: MCPServer) -> None:
        response = await _call(server, "tools/call", {"name": "report_error", "arguments": {}})

        assert response["result"]["isError"] is True
        assert response["result"]["structuredContent"]["summary"] == "nothing to run"

    @pytest.mark.asyncio
    async def test_tool_exception_is_hidden(self, server: MCPServer) -> None:
        """Without debug mode the exception text does not reach the client."""
        response = await _call(server, "tools/call", {"name": "fail", "arguments": {}})

        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "Internal tool error"

    @pytest.mark.asyncio
    async def test_tool_exception_shown_in_debug(
        self, server: MCPServer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(ENV_DEBUG, "1")

        response = await _call(server, "tools/call", {"name": "fail", "arguments": {}})

        assert response["result"]["content"][0]["text"] == "database exploded"


class TestServeStdio:
    """Line-oriented stdio loop."""

    @pytest.mark.asyncio
    async def test_answers_in_order_and_skips_blank_lines(self, server: MCPServer) -> None:
        lines = [
            json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"}),
            "",
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            json.dumps({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}),
        ]
        stdout = io.StringIO()

        await server.serve_stdio(io.StringIO("\n".join(lines) + "\n"), stdout)

        responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [r["id"] for r in responses] == [1, 2]
