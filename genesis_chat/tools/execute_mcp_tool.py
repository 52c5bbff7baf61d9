"""The single model-callable tool that forwards calls to the MCP tool server."""

import asyncio
import json
from typing import Any

from langchain_core.tools import StructuredTool, tool

from genesis_chat.clients.mcp import ToolBridge
from genesis_chat.models.tools import ToolInvocation, ToolResult
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

META_TOOL_NAME = "execute_mcp_tool"

INVALID_JSON_MESSAGE = "Error: arguments must be a valid JSON string."
NOT_AN_OBJECT_MESSAGE = "Error: arguments must be a JSON object."
UNKNOWN_FAILURE_MESSAGE = "Tool execution failed with an unknown error."
NO_CONTENT_MESSAGE = "Tool executed successfully but returned no content."


def parse_tool_arguments(arguments: str) -> dict[str, Any] | str:
    """Decode the model's JSON argument string.

    Returns:
        The decoded object, or an error message for the model
    """
    try:
        decoded = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        return INVALID_JSON_MESSAGE

    if not isinstance(decoded, dict):
        return NOT_AN_OBJECT_MESSAGE
    return decoded


def format_tool_result(result: ToolResult) -> str:
    """Flatten a tool result into the text the model reads."""
    texts = result.texts()
    if texts:
        return "\n".join(texts)
    if result.is_error:
        return UNKNOWN_FAILURE_MESSAGE
    return NO_CONTENT_MESSAGE


def create_execute_mcp_tool(bridge: ToolBridge, timeout_seconds: float = 60.0) -> StructuredTool:
    """Bind the meta-tool to a bridge.

    Args:
        bridge: Connection to the tool server
        timeout_seconds: Bound on each remote call; 0 disables it
    """

    @tool(META_TOOL_NAME, args_schema=ToolInvocation)
    async def execute_mcp_tool(tool_name: str, arguments: str) -> str:
        """Execute a Metaplex Genesis MCP tool."""
        parsed = parse_tool_arguments(arguments)
        if isinstance(parsed, str):
            logger.warning(f"Rejected arguments for {tool_name}: {arguments[:200]!r}")
            return parsed

        try:
            call = bridge.call_tool(tool_name, parsed)
            result = await asyncio.wait_for(call, timeout_seconds) if timeout_seconds else await call
        except TimeoutError:
            logger.error(f"Tool {tool_name} timed out after {timeout_seconds}s")
            return f"Error executing tool: {tool_name} timed out after {timeout_seconds:g} seconds"
        except Exception as e:
            logger.error(f"Tool {tool_name} failed: {e}", exc_info=True)
            return f"Error executing tool: {e}"

        return format_tool_result(result)

    return execute_mcp_tool
