"""Model providers."""

from relay.llm.base import (
    REQUEST_USER_INPUT,
    REQUEST_USER_INPUT_TOOL,
    ChatModel,
    HistoryTurn,
    ToolDeclaration,
)

__all__ = [
    "REQUEST_USER_INPUT",
    "REQUEST_USER_INPUT_TOOL",
    "ChatModel",
    "HistoryTurn",
    "ToolDeclaration",
]
