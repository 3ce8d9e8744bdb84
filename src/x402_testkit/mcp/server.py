"""MCP server over stdio.

Reads JSON-RPC messages (one per line) from stdin, dispatches them and writes
responses to stdout. stdout is the protocol channel, so everything else,
logging included, goes to stderr.
"""

from __future__ import annotations

import asyncio
import inspect
import io
import json
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jsonschema

from x402_testkit.mcp.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    MCP_PROTOCOL_VERSION,
    PARSE_ERROR,
    CallToolRequestParams,
    CallToolResult,
    Implementation,
    InitializeResult,
    JSONRPCError,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    ListToolsResult,
    TextContent,
    Tool,
)
from x402_testkit.observability import get_logger, is_debug_mode

logger = get_logger(__name__)

_INTERNAL_TOOL_ERROR_MESSAGE = "Internal tool error"

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "additionalProperties": False}


@dataclass(frozen=True)
class RegisteredTool:
    func: Callable[..., Any]
    input_schema: dict[str, Any]
    description: str
    title: str | None = None


def _error_line(rid: str | int | None, code: int, message: str) -> str:
    response = JSONRPCErrorResponse(id=rid, error=JSONRPCError(code=code, message=message))
    return json.dumps(response.model_dump(by_alias=True))


def _result_line(rid: str | int, result: dict[str, Any]) -> str:
    return json.dumps(JSONRPCResponse(id=rid, result=result).model_dump(by_alias=True))


def _text_result(text: str, *, is_error: bool) -> dict[str, Any]:
    return CallToolResult(
        content=[TextContent(text=text).model_dump(by_alias=True)],
        isError=is_error,
    ).model_dump(by_alias=True, exclude_none=True)


class MCPServer:
    """Minimal MCP server: initialize, ping, tools/list and tools/call.

    Tools are plain (sync or async) callables receiving the validated
    arguments as keywords. A mapping result is returned as structured
    content; a mapping with ``status == "error"`` is flagged ``isError``.
    """

    def __init__(
        self,
        name: str,
        version: str,
        title: str | None = None,
        description: str | None = None,
        instructions: str | None = None,
    ) -> None:
        self._server_info = Implementation(
            name=name, version=version, title=title or name, description=description
        )
        self._instructions = instructions
        self._tools: dict[str, RegisteredTool] = {}

    def register_tool(
        self,
        name: str,
        func: Callable[..., Any],
        schema: dict[str, Any] | None = None,
        *,
        description: str = "",
        title: str | None = None,
    ) -> None:
        """Register a tool callable under name.

        Args:
            name: Unique tool name
            func: Sync or async callable taking the tool arguments as keywords
            schema: JSON Schema of the arguments (EMPTY_INPUT_SCHEMA if omitted)
            description: Human-readable description
            title: Optional display title
        """
        self._tools[name] = RegisteredTool(
            func=func,
            input_schema=schema or EMPTY_INPUT_SCHEMA,
            description=description or f"Tool {name}",
            title=title,
        )

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def _handle_initialize(self, params: dict[str, Any] | None) -> dict[str, Any]:
        client_version = (params or {}).get("protocolVersion")
        if client_version and client_version != MCP_PROTOCOL_VERSION:
            logger.debug(
                "x402.mcp.version_mismatch", client=client_version, server=MCP_PROTOCOL_VERSION
            )
        capabilities: dict[str, Any] = {"tools": {"listChanged": False}} if self._tools else {}
        result = InitializeResult(
            protocolVersion=MCP_PROTOCOL_VERSION,
            capabilities=capabilities,
            serverInfo=self._server_info,
            instructions=self._instructions,
        )
        return result.model_dump(by_alias=True, exclude_none=True)

    def _handle_tools_list(self, params: dict[str, Any] | None) -> dict[str, Any]:
        tools = [
            Tool(
                name=name,
                description=tool.description,
                inputSchema=tool.input_schema,
                title=tool.title,
            )
            for name, tool in self._tools.items()
        ]
        return ListToolsResult(tools=tools).model_dump(by_alias=True, exclude_none=True)

    async def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        """Run a tool and wrap its output in a CallToolResult.

        Raises:
            ValueError: For malformed params or arguments rejected by the
                tool's input schema (answered with INVALID_PARAMS).
        """
        try:
            parsed = CallToolRequestParams.model_validate(params)
        except ValueError as e:
            raise ValueError(f"Invalid params: {e}") from e

        tool = self._tools.get(parsed.name)
        if tool is None:
            return _text_result(f"Unknown tool: {parsed.name}", is_error=True)

        try:
            jsonschema.validate(instance=parsed.arguments, schema=tool.input_schema)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Invalid arguments: {e.message}") from e

        try:
            if inspect.iscoroutinefunction(tool.func):
                out = await tool.func(**parsed.arguments)
            else:
                loop = asyncio.get_running_loop()
                out = await loop.run_in_executor(None, lambda: tool.func(**parsed.arguments))
        except TypeError as e:
            raise ValueError(f"Tool argument mismatch: {e}") from e
        except Exception as e:
            logger.exception("x402.mcp.tool_error", tool=parsed.name, error=str(e))
            message = str(e) if is_debug_mode() else _INTERNAL_TOOL_ERROR_MESSAGE
            return _text_result(message, is_error=True)

        if isinstance(out, dict):
            return CallToolResult(
                content=[TextContent(text=json.dumps(out)).model_dump(by_alias=True)],
                isError=out.get("status") == "error",
                structuredContent=out,
            ).model_dump(by_alias=True, exclude_none=True)
        return _text_result(out if isinstance(out, str) else str(out), is_error=False)

    async def _dispatch_request(self, req: JSONRPCRequest) -> str:
        params = req.params or {}
        if req.method == "initialize":
            return _result_line(req.id, self._handle_initialize(params))
        if req.method == "ping":
            return _result_line(req.id, {})
        if req.method == "tools/list":
            return _result_line(req.id, self._handle_tools_list(params))
        if req.method == "tools/call":
            try:
                result = await self._handle_tools_call(params)
            except ValueError as e:
                return _error_line(req.id, INVALID_PARAMS, str(e))
            return _result_line(req.id, result)
        return _error_line(req.id, METHOD_NOT_FOUND, f"Method not found: {req.method}")

    def _dispatch_notification(self, notif: JSONRPCNotification) -> None:
        logger.debug("x402.mcp.notification", method=notif.method)

    async def handle_line(self, line: str) -> str | None:
        """Handle one input line; return the response line, or None for notifications."""
        try:
            raw = json.loads(line)
        except json.JSONDecodeError:
            return _error_line(None, PARSE_ERROR, "Parse error")
        if not isinstance(raw, dict):
            return _error_line(None, PARSE_ERROR, "Parse error")

        if "id" not in raw:
            try:
                self._dispatch_notification(JSONRPCNotification.model_validate(raw))
            except ValueError as e:
                logger.debug("x402.mcp.notification_error", error=str(e))
            return None

        try:
            req = JSONRPCRequest.model_validate(raw)
        except ValueError:
            return _error_line(raw.get("id"), INVALID_REQUEST, "Invalid request")
        try:
            return await self._dispatch_request(req)
        except Exception as e:
            logger.exception("x402.mcp.request_error", method=req.method, error=str(e))
            return _error_line(req.id, INTERNAL_ERROR, str(e))

    async def serve_stdio(
        self,
        stdin: io.TextIOBase | None = None,
        stdout: io.TextIOBase | None = None,
    ) -> None:
        """Serve until stdin closes.

        Requests are handled one at a time in arrival order.
        """
        _stdin = stdin if stdin is not None else sys.stdin
        _stdout = stdout if stdout is not None else sys.stdout
        loop = asyncio.get_running_loop()

        while True:
            line = await loop.run_in_executor(None, _stdin.readline)
            if not line:
                logger.debug("x402.mcp.transport_closed")
                break
            line = line.strip()
            if not line:
                continue
            response = await self.handle_line(line)
            if response is not None:
                _stdout.write(response + "\n")
                _stdout.flush()

    run_stdio = serve_stdio
