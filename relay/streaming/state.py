"""Request-scoped state for one chat turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol
from uuid import UUID

from relay.llm.base import HistoryTurn, ToolDeclaration
from relay.streaming.emitter import LineBufferedEmitter
from relay.streaming.events import ToolCallRecord
from relay.streaming.usage import UsageAccumulator


class TurnPhase(StrEnum):
    """Phases of the turn state machine."""

    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


class ToolConnection(Protocol):
    """An open connection to a remote tool server."""

    tools: list[ToolDeclaration]

    async def call_tool(self, name: str, args: dict[str, Any]) -> Any: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class AppConfigSnapshot:
    """The parts of an app's configuration a turn needs."""

    system_prompt: str
    mcp_server_url: str | None = None
    mcp_key_name: str | None = None

    @property
    def has_tools(self) -> bool:
        return bool(self.mcp_server_url and self.mcp_key_name)


@dataclass(frozen=True)
class ChatTurnRequest:
    """A validated inbound chat message with its scope."""

    message: str
    app_id: str
    org_id: str
    user_id: str
    app_config: AppConfigSnapshot
    session_id: UUID | None = None
    context: dict[str, Any] | None = None


@dataclass
class TurnState:
    """Mutable state shared by the orchestrator and dispatcher for one request."""

    request: ChatTurnRequest
    system_prompt: str
    phase: TurnPhase = TurnPhase.IDLE
    session_id: UUID | None = None
    run_id: str | None = None
    history: list[HistoryTurn] = field(default_factory=list)
    tools: list[ToolDeclaration] = field(default_factory=list)
    connection: ToolConnection | None = None
    emitter: LineBufferedEmitter = field(default_factory=LineBufferedEmitter)
    usage: UsageAccumulator = field(default_factory=UsageAccumulator)
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    interrupted: bool = False

    @property
    def completed(self) -> bool:
        return self.phase is TurnPhase.DONE
