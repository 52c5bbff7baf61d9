"""Model-callable tools for the Genesis assistant."""

from genesis_chat.tools.execute_mcp_tool import META_TOOL_NAME, create_execute_mcp_tool

__all__ = ["META_TOOL_NAME", "create_execute_mcp_tool"]
