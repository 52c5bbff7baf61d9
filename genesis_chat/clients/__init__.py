"""Clients for external collaborators (model provider, MCP tool server)."""
