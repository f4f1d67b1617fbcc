"""Provider-neutral model contract.

The orchestrator only depends on the types in this module. A provider
implementation turns them into its own wire format and yields the turn
events defined in ``relay.streaming.events``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from relay.streaming.events import FunctionCallEvent, TurnEvent

REQUEST_USER_INPUT = "request_user_input"


@dataclass(frozen=True)
class ToolDeclaration:
    """A tool the model may call: name, description, JSON Schema parameters."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


@dataclass(frozen=True)
class HistoryTurn:
    """One prior turn of the conversation as sent to the model.

    A turn carries either text or, for model turns that issued a call, the
    function call itself (with its thought signature).
    """

    role: Literal["user", "model"]
    text: str | None = None
    function_call: FunctionCallEvent | None = None

    @classmethod
    def user(cls, text: str) -> HistoryTurn:
        return cls(role="user", text=text)

    @classmethod
    def model(cls, text: str) -> HistoryTurn:
        return cls(role="model", text=text)

    @classmethod
    def model_call(cls, call: FunctionCallEvent) -> HistoryTurn:
        return cls(role="model", function_call=call)


REQUEST_USER_INPUT_TOOL = ToolDeclaration(
    name=REQUEST_USER_INPUT,
    description=(
        "Ask the user for a specific piece of structured input (for example an "
        "email address, a URL or a short free-text answer). The client renders "
        "an input field; the conversation resumes when the user submits it. "
        "Call this instead of asking the question in plain text."
    ),
    parameters={
        "type": "object",
        "properties": {
            "input_type": {
                "type": "string",
                "enum": ["text", "email", "url", "number", "textarea"],
                "description": "Kind of input field to render.",
            },
            "label": {
                "type": "string",
                "description": "Question or label shown above the field.",
            },
            "placeholder": {
                "type": "string",
                "description": "Optional placeholder text for the field.",
            },
            "field": {
                "type": "string",
                "description": "Key under which the answer is reported back.",
            },
        },
        "required": ["input_type", "label", "field"],
    },
)


class ChatModel(Protocol):
    """Streaming chat model with function calling."""

    provider: str

    def stream_chat(
        self,
        history: list[HistoryTurn],
        user_message: str,
        *,
        tools: list[ToolDeclaration],
        system_prompt: str,
    ) -> AsyncGenerator[TurnEvent, None]:
        """Stream the reply to a new user message."""
        ...

    def stream_function_result(
        self,
        history: list[HistoryTurn],
        name: str,
        result: Any,
        *,
        tools: list[ToolDeclaration],
        system_prompt: str,
    ) -> AsyncGenerator[TurnEvent, None]:
        """Stream the continuation after a function call returned ``result``.

        ``history`` must end with the model turn that issued the call.
        """
        ...
