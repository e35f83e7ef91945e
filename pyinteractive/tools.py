"""MCP tool definitions and their handlers.

All tools are defined here with their schemas; ToolHandlers dispatches a tool
call to the evaluation session.
"""

from __future__ import annotations

import logging
from typing import Any

from pyinteractive.session import EvaluationSession

logger = logging.getLogger(__name__)

# Tool schema type
Tool = dict[str, Any]

RUN = "run"
CLEAN_EXECUTE_CONTEXT = "clean_execute_context"
GET_HISTORY_CODE = "get_history_code"

ALL_TOOLS: list[Tool] = [
    {
        "name": RUN,
        "description": (
            "Execute the provided Python code; state such as variables, functions "
            "and imports is preserved between calls. Returns printed output and the "
            "value of a trailing expression."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "code": {"type": "string", "description": "Python code to execute"},
            },
            "required": ["code"],
        },
    },
    {
        "name": CLEAN_EXECUTE_CONTEXT,
        "description": "Clean the code execution context; all previous state and history are cleared.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": GET_HISTORY_CODE,
        "description": "Get the code submitted since the last clean, in call order.",
        "inputSchema": {"type": "object", "properties": {}},
    },
]


class ToolHandlers:
    """Handlers for all MCP tools, bound to one evaluation session."""

    def __init__(self, session: EvaluationSession) -> None:
        self.session = session

    async def handle_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Dispatch a tool call.

        Errors from the session (EvaluationError, ConfigurationError) are not
        caught here; the server reports them to the caller verbatim.

        Raises:
            ValueError: Unknown tool name or missing argument.
        """
        if name == RUN:
            code = arguments.get("code")
            if not isinstance(code, str):
                raise ValueError("'code' must be a string")
            result = await self.session.run(code)
            return result if result is not None else ""
        if name == CLEAN_EXECUTE_CONTEXT:
            await self.session.reset()
            return "Execution context cleared"
        if name == GET_HISTORY_CODE:
            return await self.session.get_history()
        raise ValueError(f"Unknown tool: {name}")
