"""Shared fixtures for streaming pipeline tests.

Provides a scripted chat model, a fake MCP connection and an in-memory
stand-in for the session/message repositories.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from relay.clients.runs import Run, RunsClient
from relay.llm.base import HistoryTurn, ToolDeclaration
from relay.storage.entities import ChatSession, Message
from relay.streaming.state import AppConfigSnapshot, ChatTurnRequest


class ScriptedModel:
    """Chat model that replays pre-scripted event lists.

    Items that are exceptions are raised instead of yielded, which simulates
    a provider failure mid-stream.
    """

    provider = "scripted"

    def __init__(self, initial: list[Any], continuations: list[list[Any]] | None = None):
        self.initial = initial
        self.continuations = list(continuations or [])
        self.chat_calls: list[dict[str, Any]] = []
        self.function_calls: list[dict[str, Any]] = []

    async def stream_chat(self, history, user_message, *, tools, system_prompt):
        self.chat_calls.append(
            {
                "history": list(history),
                "user_message": user_message,
                "tools": list(tools),
                "system_prompt": system_prompt,
            }
        )
        for item in self.initial:
            if isinstance(item, BaseException):
                raise item
            yield item

    async def stream_function_result(self, history, name, result, *, tools, system_prompt):
        self.function_calls.append(
            {"history": list(history), "name": name, "result": result, "tools": list(tools)}
        )
        events = self.continuations.pop(0) if self.continuations else []
        for item in events:
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeToolConnection:
    """In-memory MCP connection. ``results`` maps tool name to result or exception."""

    def __init__(self, tools: list[ToolDeclaration], results: dict[str, Any] | None = None):
        self.tools = tools
        self.results = results or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def call_tool(self, name: str, args: dict[str, Any]) -> Any:
        self.calls.append((name, args))
        result = self.results.get(name)
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self) -> None:
        await asyncio.sleep(0)
        self.closed = True


class InMemoryStore:
    """Backing store for the fake repositories."""

    def __init__(self) -> None:
        self.sessions: dict[UUID, ChatSession] = {}
        self.messages: list[Message] = []

    def add_session(self, *, org_id: str, user_id: str, app_id: str) -> ChatSession:
        chat_session = ChatSession(id=uuid4(), org_id=org_id, user_id=user_id, app_id=app_id)
        self.sessions[chat_session.id] = chat_session
        return chat_session

    def add_message(self, session_id: UUID, role: str, content: str) -> Message:
        message = Message(id=uuid4(), session_id=session_id, role=role, content=content)
        self.messages.append(message)
        return message

    def messages_by_role(self, role: str) -> list[Message]:
        return [m for m in self.messages if m.role == role]


class _FakeChatSessionRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def create(self, *, org_id: str, user_id: str, app_id: str) -> ChatSession:
        return self._store.add_session(org_id=org_id, user_id=user_id, app_id=app_id)

    async def get_by_id(self, session_id: UUID) -> ChatSession | None:
        return self._store.sessions.get(session_id)


class _FakeMessageRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def create(self, *, session_id, role, content, **fields) -> Message:
        message = Message(id=uuid4(), session_id=session_id, role=role, content=content, **fields)
        self._store.messages.append(message)
        return message

    async def list_history(self, session_id: UUID) -> list[Message]:
        return [m for m in self._store.messages if m.session_id == session_id and m.role != "tool"]


@pytest.fixture()
def store(monkeypatch: pytest.MonkeyPatch) -> InMemoryStore:
    """Route the orchestrator's repositories to an in-memory store."""
    store = InMemoryStore()
    monkeypatch.setattr(
        "relay.streaming.orchestrator.ChatSessionRepository",
        lambda session: _FakeChatSessionRepository(store),
    )
    monkeypatch.setattr(
        "relay.streaming.orchestrator.MessageRepository",
        lambda session: _FakeMessageRepository(store),
    )
    return store


@pytest.fixture()
def session_factory():
    """Session factory yielding a throwaway mock session."""

    @asynccontextmanager
    async def _factory():
        yield MagicMock()

    return _factory


@pytest.fixture()
def runs_client() -> AsyncMock:
    client = AsyncMock(spec=RunsClient)
    client.create_run.return_value = Run(id="run-1", status="running")
    return client


@pytest.fixture()
def app_config() -> AppConfigSnapshot:
    return AppConfigSnapshot(
        system_prompt="You are a helpful assistant.",
        mcp_server_url="https://mcp.test.local",
        mcp_key_name="mcp-key",
    )


@pytest.fixture()
def make_request(app_config: AppConfigSnapshot):
    """Build a ChatTurnRequest with test defaults."""

    def _make(message: str = "Hello", **overrides: Any) -> ChatTurnRequest:
        fields: dict[str, Any] = {
            "message": message,
            "app_id": "app-1",
            "org_id": "org-1",
            "user_id": "user-1",
            "app_config": app_config,
        }
        fields.update(overrides)
        return ChatTurnRequest(**fields)

    return _make


def connector_for(connection: FakeToolConnection | None = None, error: Exception | None = None):
    """Tool connector mock whose ``open`` returns ``connection`` or raises ``error``."""
    connector = MagicMock()
    connector.open = AsyncMock(side_effect=error, return_value=connection)
    return connector


async def collect(stream) -> list[dict[str, Any]]:
    """Drain an async generator of chat events into a list."""
    return [event async for event in stream]


def tokens_of(events) -> str:
    return "".join(e["content"] for e in events if e.get("type") == "token")


def history_texts(history: list[HistoryTurn]) -> list[tuple[str, str | None]]:
    return [(turn.role, turn.text) for turn in history]
