"""Tool-call dispatcher: route one model function call.

A call is either the local ``request_user_input`` pseudo-tool, which asks the
client for structured input and ends the turn, or a remote tool on the app's
MCP server. A remote call's result is fed back to the model and the
continuation stream is driven through the same routine as the initial one,
with nested dispatch disabled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from relay.llm.base import REQUEST_USER_INPUT, HistoryTurn
from relay.streaming.events import ChatEvent, ToolCallRecord

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from relay.llm.base import ChatModel
    from relay.streaming.events import FunctionCallEvent, TurnEvent
    from relay.streaming.state import TurnState

    ContinuationDriver = Callable[
        [AsyncGenerator[TurnEvent, None], TurnState],
        AsyncGenerator[ChatEvent, None],
    ]

logger = logging.getLogger(__name__)

TOOL_FAILURE_NOTICE = " (Tool call failed, continuing without result.)"

DEFAULT_INPUT_TYPE = "text"
DEFAULT_INPUT_LABEL = "Please provide the requested information."
DEFAULT_INPUT_FIELD = "input"


def build_input_request(args: dict[str, Any] | None) -> ChatEvent:
    """Build the ``input_request`` event for a pseudo-tool call, filling defaults."""
    args = args or {}
    placeholder = args.get("placeholder")
    return ChatEvent.input_request(
        input_type=str(args.get("input_type") or DEFAULT_INPUT_TYPE),
        label=str(args.get("label") or DEFAULT_INPUT_LABEL),
        field=str(args.get("field") or DEFAULT_INPUT_FIELD),
        placeholder=str(placeholder) if placeholder else None,
    )


class ToolCallDispatcher:
    """Dispatch function calls for one request.

    Args:
        model: Model used for the continuation after a remote tool call.
        drive_continuation: Routine that drives a continuation stream through
            the emitter, yielding client events. It must not dispatch nested
            function calls.
    """

    def __init__(self, model: ChatModel, drive_continuation: ContinuationDriver) -> None:
        self._model = model
        self._drive_continuation = drive_continuation

    async def dispatch(
        self, call: FunctionCallEvent, state: TurnState
    ) -> AsyncGenerator[ChatEvent, None]:
        """Handle one function call, yielding client events.

        Sets ``state.interrupted`` when the call ends the turn.
        """
        if call.name == REQUEST_USER_INPUT:
            yield build_input_request(call.args)
            state.interrupted = True
            return

        connection = state.connection
        if connection is None:
            logger.debug("No tool connection, skipping call to %s", call.name)
            return

        args = dict(call.args or {})
        yield ChatEvent.tool_call(call.name, args)

        try:
            result = await connection.call_tool(call.name, args)
        except Exception:
            logger.warning("Tool call %s failed", call.name, exc_info=True)
            for text in state.emitter.consume(TOOL_FAILURE_NOTICE):
                yield ChatEvent.token(text)
            return

        state.tool_calls.append(ToolCallRecord(name=call.name, args=args, result=result))
        yield ChatEvent.tool_result(call.name, result)

        history = [
            *state.history,
            HistoryTurn.user(state.request.message),
            HistoryTurn.model_call(call),
        ]
        continuation = self._model.stream_function_result(
            history,
            call.name,
            result,
            tools=state.tools,
            system_prompt=state.system_prompt,
        )
        async for event in self._drive_continuation(continuation, state):
            yield event
