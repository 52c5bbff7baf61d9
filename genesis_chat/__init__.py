"""Genesis Chat: conversational token creation over an MCP tool server."""

__version__ = "0.1.0"
