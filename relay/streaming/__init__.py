"""Streaming pipeline: token emitter, button markup, usage, tool dispatch.

The orchestrator lives in ``relay.streaming.orchestrator`` and is imported
from there directly.
"""

from relay.streaming.buttons import extract_buttons, strip_buttons
from relay.streaming.emitter import EmitterResult, LineBufferedEmitter
from relay.streaming.events import (
    Button,
    ChatEvent,
    DoneEvent,
    FunctionCallEvent,
    TokenEvent,
    ToolCallRecord,
)
from relay.streaming.usage import CostItem, Usage, UsageAccumulator

__all__ = [
    "Button",
    "ChatEvent",
    "CostItem",
    "DoneEvent",
    "EmitterResult",
    "FunctionCallEvent",
    "LineBufferedEmitter",
    "TokenEvent",
    "ToolCallRecord",
    "Usage",
    "UsageAccumulator",
    "extract_buttons",
    "strip_buttons",
]
