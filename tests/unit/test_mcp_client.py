"""Unit tests for the MCP tool connection."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp import types as mcp_types

from relay.clients.keys import CallerInfo, DecryptedKey
from relay.exceptions import ToolCallError, ToolConnectionError
from relay.mcp.client import McpToolConnector, connect_mcp, sse_endpoint
from relay.streaming.state import AppConfigSnapshot

CALLER = CallerInfo(service="chat-service", method="POST", path="/chat")


class FakeClientSession:
    def __init__(self, read_stream, write_stream):
        self.initialize = AsyncMock()
        self.list_tools = AsyncMock(
            return_value=mcp_types.ListToolsResult(
                tools=[
                    mcp_types.Tool(
                        name="lookup",
                        description="Look something up",
                        inputSchema={"type": "object", "properties": {"q": {"type": "string"}}},
                    )
                ]
            )
        )
        self.call_tool = AsyncMock()
        self.exited = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.exited = True


@pytest.fixture()
def fake_mcp(monkeypatch: pytest.MonkeyPatch):
    """Patch the SSE transport and client session; returns a record of the call."""
    record: dict = {"sessions": []}

    @asynccontextmanager
    async def fake_sse_client(url, headers=None, timeout=5):
        record["url"] = url
        record["headers"] = headers
        yield MagicMock(), MagicMock()
        record["transport_closed"] = True

    def fake_session(read_stream, write_stream):
        session = FakeClientSession(read_stream, write_stream)
        record["sessions"].append(session)
        return session

    monkeypatch.setattr("relay.mcp.client.sse_client", fake_sse_client)
    monkeypatch.setattr("relay.mcp.client.ClientSession", fake_session)
    return record


class TestSseEndpoint:
    def test_appends_sse(self):
        assert sse_endpoint("https://mcp.example.com") == "https://mcp.example.com/sse"
        assert sse_endpoint("https://mcp.example.com/") == "https://mcp.example.com/sse"

    def test_keeps_existing_sse(self):
        assert sse_endpoint("https://mcp.example.com/sse") == "https://mcp.example.com/sse"


class TestConnectMcp:
    @pytest.mark.asyncio
    async def test_connects_with_bearer_and_lists_tools(self, fake_mcp):
        connection = await connect_mcp("https://mcp.example.com", "secret")

        assert fake_mcp["url"] == "https://mcp.example.com/sse"
        assert fake_mcp["headers"] == {"Authorization": "Bearer secret"}
        fake_mcp["sessions"][0].initialize.assert_awaited_once()
        assert [t.name for t in connection.tools] == ["lookup"]
        assert connection.tools[0].parameters["properties"] == {"q": {"type": "string"}}

        await connection.close()
        assert fake_mcp["sessions"][0].exited
        assert fake_mcp["transport_closed"]

    @pytest.mark.asyncio
    async def test_handshake_failure_raises(self, fake_mcp, monkeypatch):
        def failing_session(read_stream, write_stream):
            session = FakeClientSession(read_stream, write_stream)
            session.initialize.side_effect = RuntimeError("handshake")
            fake_mcp["sessions"].append(session)
            return session

        monkeypatch.setattr("relay.mcp.client.ClientSession", failing_session)

        with pytest.raises(ToolConnectionError) as exc_info:
            await connect_mcp("https://mcp.example.com", "secret")

        assert exc_info.value.server_url == "https://mcp.example.com/sse"
        assert fake_mcp["sessions"][0].exited


class TestMcpToolConnection:
    @pytest.mark.asyncio
    async def test_call_tool_returns_content_blocks(self, fake_mcp):
        connection = await connect_mcp("https://mcp.example.com", "secret")
        session = fake_mcp["sessions"][0]
        session.call_tool.return_value = mcp_types.CallToolResult(
            content=[mcp_types.TextContent(type="text", text="42")], isError=False
        )

        result = await connection.call_tool("lookup", {"q": "life"})

        session.call_tool.assert_awaited_once_with("lookup", arguments={"q": "life"})
        assert result[0]["type"] == "text"
        assert result[0]["text"] == "42"

    @pytest.mark.asyncio
    async def test_error_result_raises(self, fake_mcp):
        connection = await connect_mcp("https://mcp.example.com", "secret")
        fake_mcp["sessions"][0].call_tool.return_value = mcp_types.CallToolResult(
            content=[mcp_types.TextContent(type="text", text="nope")], isError=True
        )

        with pytest.raises(ToolCallError):
            await connection.call_tool("lookup", {})

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self, fake_mcp):
        connection = await connect_mcp("https://mcp.example.com", "secret")
        fake_mcp["sessions"][0].call_tool.side_effect = ConnectionError("reset")

        with pytest.raises(ToolCallError):
            await connection.call_tool("lookup", {})


class TestMcpToolConnector:
    @pytest.mark.asyncio
    async def test_no_tool_server_returns_none(self):
        keys = MagicMock()
        keys.decrypt_app_key = AsyncMock()
        connector = McpToolConnector(keys, caller=CALLER)

        assert await connector.open(AppConfigSnapshot(system_prompt="x")) is None
        keys.decrypt_app_key.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decrypts_credential_and_connects(self, fake_mcp):
        keys = MagicMock()
        keys.decrypt_app_key = AsyncMock(return_value=DecryptedKey("mcp-key", "decrypted"))
        connector = McpToolConnector(keys, caller=CALLER)
        config = AppConfigSnapshot(
            system_prompt="x", mcp_server_url="https://mcp.example.com", mcp_key_name="mcp-key"
        )

        connection = await connector.open(config)

        keys.decrypt_app_key.assert_awaited_once_with("mcp-key", CALLER)
        assert fake_mcp["headers"] == {"Authorization": "Bearer decrypted"}
        assert connection is not None
