"""Event types for the streaming pipeline.

Two vocabularies live here:

- Turn events (``TokenEvent``, ``FunctionCallEvent``, ``DoneEvent``) are what
  a model stream yields, one per stream item.
- ``ChatEvent`` is the client-facing payload written to the SSE response.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from relay.streaming.usage import Usage

SSE_DONE = "[DONE]"


@dataclass(frozen=True)
class TokenEvent:
    """A text fragment produced by the model."""

    text: str


@dataclass(frozen=True)
class FunctionCallEvent:
    """A function call issued by the model.

    Attributes:
        name: Tool name the model wants to invoke.
        args: Decoded call arguments.
        thought_signature: Opaque provider token that must be echoed back
            with the call on the next request.
    """

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    thought_signature: bytes | None = None


@dataclass(frozen=True)
class DoneEvent:
    """End of one model stream, with the usage reported for it (if any)."""

    usage: Usage | None = None


TurnEvent = TokenEvent | FunctionCallEvent | DoneEvent


@dataclass(frozen=True)
class Button:
    """A quick-reply option parsed from trailing response markup."""

    label: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ToolCallRecord:
    """A completed remote tool call, persisted with the assistant message."""

    name: str
    args: dict[str, Any]
    result: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "args": self.args, "result": self.result}


class ChatEvent(dict[str, Any]):
    """A client-facing SSE payload.

    Constructed through the classmethods below so every event kind carries
    exactly the fields clients rely on.
    """

    @property
    def kind(self) -> str | None:
        """Event type, ``"session"`` for the session announcement."""
        if "sessionId" in self:
            return "session"
        return self.get("type")

    @property
    def is_done(self) -> bool:
        return self.get("type") == "done"

    @classmethod
    def session(cls, session_id: str) -> ChatEvent:
        return cls(sessionId=session_id)

    @classmethod
    def token(cls, content: str) -> ChatEvent:
        return cls(type="token", content=content)

    @classmethod
    def tool_call(cls, name: str, args: dict[str, Any]) -> ChatEvent:
        return cls(type="tool_call", name=name, args=args)

    @classmethod
    def tool_result(cls, name: str, result: Any) -> ChatEvent:
        return cls(type="tool_result", name=name, result=result)

    @classmethod
    def input_request(
        cls,
        *,
        input_type: str,
        label: str,
        field: str,
        placeholder: str | None = None,
    ) -> ChatEvent:
        event = cls(type="input_request", input_type=input_type, label=label, field=field)
        if placeholder is not None:
            event["placeholder"] = placeholder
        return event

    @classmethod
    def buttons(cls, buttons: list[Button]) -> ChatEvent:
        return cls(type="buttons", buttons=[b.to_dict() for b in buttons])

    @classmethod
    def done(cls) -> ChatEvent:
        """Completion sentinel, always the last event of a response."""
        return cls(type="done")

    def to_sse(self) -> str:
        """Render as one Server-Sent Events ``data:`` frame."""
        if self.is_done:
            return f"data: {SSE_DONE}\n\n"
        return f"data: {json.dumps(self, default=str)}\n\n"
