"""MCP stdio server exposing the evaluation session as tools."""

from __future__ import annotations

import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from pyinteractive.session import EvaluationSession
from pyinteractive.tools import ALL_TOOLS, ToolHandlers

logger = logging.getLogger(__name__)

SERVER_NAME = "pyinteractive"


def tool_list() -> list[Tool]:
    return [
        Tool(
            name=tool["name"],
            description=tool["description"],
            inputSchema=tool["inputSchema"],
        )
        for tool in ALL_TOOLS
    ]


async def dispatch(
    handlers: ToolHandlers, name: str, arguments: dict[str, Any] | None
) -> list[TextContent]:
    """Run one tool call and wrap its text for the transport.

    Handler errors are logged and re-raised; the SDK turns them into an error
    result carrying the message.
    """
    logger.info(f"Tool called: {name}")
    try:
        text = await handlers.handle_tool(name, arguments or {})
    except Exception as e:
        logger.warning(f"Tool {name} failed: {e}")
        raise
    return [TextContent(type="text", text=text)]


def create_server(session: EvaluationSession) -> tuple[Server, ToolHandlers]:
    """Create the MCP server and the handlers bound to session."""
    handlers = ToolHandlers(session)
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return tool_list()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return await dispatch(handlers, name, arguments)

    return server, handlers


async def serve(session: EvaluationSession) -> None:
    """Run the server on stdio until the client disconnects."""
    server, _ = create_server(session)
    logger.info(f"Registered {len(ALL_TOOLS)} tools")
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Server running on stdio")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
