"""MCP remote tool client."""

from relay.mcp.client import McpToolConnection, McpToolConnector, connect_mcp

__all__ = ["McpToolConnection", "McpToolConnector", "connect_mcp"]
