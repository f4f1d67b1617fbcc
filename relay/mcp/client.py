"""Remote tool access over MCP (SSE transport).

A connection is opened per chat request and closed when the request ends.
The app's MCP credential comes from the key service.
"""

from __future__ import annotations

import contextlib
import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any

from mcp import ClientSession
from mcp.client.sse import sse_client

from relay.clients.keys import CallerInfo
from relay.exceptions import ToolCallError, ToolConnectionError
from relay.llm.base import ToolDeclaration

if TYPE_CHECKING:
    from relay.clients.keys import KeyServiceClient
    from relay.streaming.state import AppConfigSnapshot

logger = logging.getLogger(__name__)


def sse_endpoint(server_url: str) -> str:
    """The server's SSE endpoint; ``/sse`` is appended unless already present."""
    url = server_url.rstrip("/")
    return url if url.endswith("/sse") else f"{url}/sse"


class McpToolConnection:
    """An initialized MCP client session plus the tools it declared."""

    def __init__(
        self,
        session: ClientSession,
        tools: list[ToolDeclaration],
        exit_stack: AsyncExitStack,
        server_url: str,
    ) -> None:
        self._session = session
        self.tools = tools
        self._exit_stack = exit_stack
        self.server_url = server_url

    async def call_tool(self, name: str, args: dict[str, Any]) -> Any:
        """Invoke a tool and return its content blocks as JSON-ready dicts.

        Raises:
            ToolCallError: The call failed or the server flagged an error.
        """
        try:
            result = await self._session.call_tool(name, arguments=args)
        except Exception as e:
            raise ToolCallError(f"Tool {name} failed: {e}", name) from e

        content = [block.model_dump(mode="json", exclude_none=True) for block in result.content]
        if result.isError:
            raise ToolCallError(f"Tool {name} returned an error", name, details={"content": content})
        return content

    async def close(self) -> None:
        await self._exit_stack.aclose()


async def connect_mcp(server_url: str, credential: str, *, timeout: float = 30.0) -> McpToolConnection:
    """Connect to an MCP server, initialize the session and list its tools.

    Raises:
        ToolConnectionError: Any step of the handshake failed.
    """
    endpoint = sse_endpoint(server_url)
    stack = AsyncExitStack()
    try:
        read_stream, write_stream = await stack.enter_async_context(
            sse_client(endpoint, headers={"Authorization": f"Bearer {credential}"}, timeout=timeout)
        )
        session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
        await session.initialize()
        listed = await session.list_tools()
    except Exception as e:
        with contextlib.suppress(Exception):
            await stack.aclose()
        raise ToolConnectionError(f"Could not connect to {endpoint}: {e}", server_url=endpoint) from e

    tools = [
        ToolDeclaration(
            name=tool.name,
            description=tool.description or "",
            parameters=tool.inputSchema,
        )
        for tool in listed.tools
    ]
    logger.info("Connected to %s with %d tools", endpoint, len(tools))
    return McpToolConnection(session, tools, stack, endpoint)


class McpToolConnector:
    """Open MCP connections for apps that configure a tool server.

    Args:
        key_client: Decrypts the app's MCP credential.
        caller: Reported to the key service.
        timeout: Connect timeout in seconds.
    """

    def __init__(self, key_client: KeyServiceClient, *, caller: CallerInfo, timeout: float = 30.0) -> None:
        self._keys = key_client
        self._caller = caller
        self._timeout = timeout

    async def open(self, app_config: AppConfigSnapshot) -> McpToolConnection | None:
        """Connect to the app's tool server, or return None if it has none."""
        if not app_config.mcp_server_url or not app_config.mcp_key_name:
            return None
        key = await self._keys.decrypt_app_key(app_config.mcp_key_name, self._caller)
        return await connect_mcp(app_config.mcp_server_url, key.key, timeout=self._timeout)
