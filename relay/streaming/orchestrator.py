"""Turn orchestrator: drive one chat request from message to persisted reply.

Phases: IDLE -> STREAMING -> (TOOL_DISPATCH -> STREAMING)* -> FINALIZING ->
DONE, with ERRORED reachable from any of them.

``_drive`` is the one routine that pushes a model stream through the
emitter and dispatcher; the initial stream and every continuation go
through it. Continuations are driven with dispatch disabled, so each
model-issued call gets at most one tool round-trip.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from functools import partial
from typing import TYPE_CHECKING, Any

import anyio

from relay.dal import ChatSessionRepository, MessageRepository
from relay.exceptions import SessionOwnershipError
from relay.llm.base import REQUEST_USER_INPUT_TOOL, HistoryTurn
from relay.streaming.buttons import strip_buttons
from relay.streaming.dispatcher import ToolCallDispatcher
from relay.streaming.events import (
    ChatEvent,
    DoneEvent,
    FunctionCallEvent,
    TokenEvent,
)
from relay.streaming.state import TurnPhase, TurnState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from relay.clients.runs import RunsClient
    from relay.llm.base import ChatModel
    from relay.mcp.client import McpToolConnector
    from relay.settings import Settings
    from relay.streaming.events import Button, TurnEvent
    from relay.streaming.state import AppConfigSnapshot, ChatTurnRequest, ToolConnection

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "\n\nSorry, something went wrong. Please try again."
SESSION_NOT_FOUND_MESSAGE = "This conversation could not be found."


def build_system_prompt(base: str, context: dict[str, Any] | None) -> str:
    """Append the request context, if any, to the app's system prompt."""
    if not context:
        return base
    rendered = json.dumps(context, indent=2, sort_keys=True, default=str)
    return f"{base}\n\n## Request context\n\n```json\n{rendered}\n```"


class TurnOrchestrator:
    """Run chat turns against one model and its collaborators.

    One instance can serve many requests; everything request-scoped lives in
    the ``TurnState`` created per call to ``stream()``.

    Args:
        model: Streaming chat model.
        session_factory: Returns a committing ``AsyncSession`` context manager.
            Each write gets its own session so none is held across the model
            stream.
        runs_client: Metering collaborator.
        settings: Application settings (timeout, cost name prefix).
        tool_connector: Opens the app's remote tool connection, if any.
    """

    def __init__(
        self,
        *,
        model: ChatModel,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        runs_client: RunsClient,
        settings: Settings,
        tool_connector: McpToolConnector | None = None,
    ) -> None:
        self._model = model
        self._session_factory = session_factory
        self._runs = runs_client
        self._settings = settings
        self._tool_connector = tool_connector
        self._dispatcher = ToolCallDispatcher(model, partial(self._drive, dispatch=False))

    async def stream(self, request: ChatTurnRequest) -> AsyncGenerator[ChatEvent, None]:
        """Run one turn, yielding client events.

        The last event is always ``ChatEvent.done()``, unless the consumer
        goes away first.
        """
        state = TurnState(
            request=request,
            system_prompt=build_system_prompt(request.app_config.system_prompt, request.context),
        )
        try:
            async with asyncio.timeout(self._settings.stream_timeout_seconds):
                async for event in self._run(state):
                    yield event
        except SessionOwnershipError:
            logger.info(
                "Session %s not found for org=%s user=%s app=%s",
                request.session_id,
                request.org_id,
                request.user_id,
                request.app_id,
            )
            state.phase = TurnPhase.DONE
            yield ChatEvent.token(SESSION_NOT_FOUND_MESSAGE)
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("Client disconnected during %s phase", state.phase)
            raise
        except TimeoutError:
            logger.error("Chat turn timed out after %ds", self._settings.stream_timeout_seconds)
            state.phase = TurnPhase.ERRORED
            yield ChatEvent.token(APOLOGY_MESSAGE)
        except Exception:
            logger.exception("Chat turn failed during %s phase", state.phase)
            state.phase = TurnPhase.ERRORED
            yield ChatEvent.token(APOLOGY_MESSAGE)
        finally:
            # Starlette cancels the response task group on disconnect.
            with anyio.CancelScope(shield=True):
                await self._cleanup(state)

        yield ChatEvent.done()

    async def _run(self, state: TurnState) -> AsyncGenerator[ChatEvent, None]:
        request = state.request

        # IDLE
        session_id = await self._resolve_session(request)
        state.session_id = session_id
        yield ChatEvent.session(str(session_id))

        run = await self._runs.create_run(
            org_id=request.org_id, user_id=request.user_id, app_id=request.app_id
        )
        state.run_id = run.id if run else None

        state.history = await self._load_history(session_id)
        state.connection = await self._open_tools(request.app_config)
        state.tools = [REQUEST_USER_INPUT_TOOL]
        if state.connection is not None:
            state.tools.extend(state.connection.tools)

        await self._save_message(
            session_id, run_id=state.run_id, role="user", content=request.message
        )

        # STREAMING
        state.phase = TurnPhase.STREAMING
        stream = self._model.stream_chat(
            state.history,
            request.message,
            tools=state.tools,
            system_prompt=state.system_prompt,
        )
        async for event in self._drive(stream, state, dispatch=True):
            yield event

        if state.interrupted:
            # The input request ended the turn; persist what was said so far.
            for text in state.emitter.drain():
                yield ChatEvent.token(text)
            content = state.emitter.full_response
            buttons: list[Button] = []
        else:
            state.phase = TurnPhase.FINALIZING
            result = state.emitter.finalize()
            for text in result.visible:
                yield ChatEvent.token(text)
            buttons = result.buttons
            content = state.emitter.full_response
            if buttons:
                yield ChatEvent.buttons(buttons)
                content = strip_buttons(content)

        await self._save_message(
            session_id,
            run_id=state.run_id,
            role="assistant",
            content=content,
            tool_calls=[record.to_dict() for record in state.tool_calls] or None,
            buttons=[button.to_dict() for button in buttons] or None,
            token_count=state.usage.token_count,
        )
        state.phase = TurnPhase.DONE

    async def _drive(
        self,
        stream: AsyncGenerator[TurnEvent, None],
        state: TurnState,
        *,
        dispatch: bool,
    ) -> AsyncGenerator[ChatEvent, None]:
        """Route one model stream's events through the emitter and dispatcher."""
        async with aclosing(stream):
            async for event in stream:
                if isinstance(event, TokenEvent):
                    for text in state.emitter.consume(event.text):
                        yield ChatEvent.token(text)
                elif isinstance(event, FunctionCallEvent):
                    if not dispatch:
                        logger.info("Ignoring function call %s in continuation", event.name)
                        continue
                    state.phase = TurnPhase.TOOL_DISPATCH
                    async for chat_event in self._dispatcher.dispatch(event, state):
                        yield chat_event
                    if state.interrupted:
                        return
                    state.phase = TurnPhase.STREAMING
                elif isinstance(event, DoneEvent):
                    state.usage.add(event.usage)

    async def _resolve_session(self, request: ChatTurnRequest) -> UUID:
        async with self._session_factory() as session:
            repo = ChatSessionRepository(session)
            if request.session_id is None:
                chat_session = await repo.create(
                    org_id=request.org_id,
                    user_id=request.user_id,
                    app_id=request.app_id,
                )
                return chat_session.id

            chat_session = await repo.get_by_id(request.session_id)
            if chat_session is None or not chat_session.is_owned_by(
                org_id=request.org_id, user_id=request.user_id, app_id=request.app_id
            ):
                raise SessionOwnershipError(f"Session {request.session_id} not found")
            return chat_session.id

    async def _load_history(self, session_id: UUID) -> list[HistoryTurn]:
        async with self._session_factory() as session:
            messages = await MessageRepository(session).list_history(session_id)
        return [
            HistoryTurn.model(m.content) if m.role == "assistant" else HistoryTurn.user(m.content)
            for m in messages
        ]

    async def _open_tools(self, app_config: AppConfigSnapshot) -> ToolConnection | None:
        if self._tool_connector is None or not app_config.has_tools:
            return None
        try:
            return await self._tool_connector.open(app_config)
        except Exception:
            logger.warning(
                "Could not connect to tool server %s, continuing without tools",
                app_config.mcp_server_url,
                exc_info=True,
            )
            return None

    async def _save_message(
        self, session_id: UUID, *, run_id: str | None, role: str, content: str, **fields: Any
    ) -> None:
        async with self._session_factory() as session:
            await MessageRepository(session).create(
                session_id=session_id,
                role=role,
                content=content,
                run_id=run_id,
                **fields,
            )

    async def _cleanup(self, state: TurnState) -> None:
        if state.connection is not None:
            with anyio.move_on_after(self._settings.cleanup_timeout_seconds) as scope:
                try:
                    await state.connection.close()
                except Exception:
                    logger.debug("Error closing tool connection", exc_info=True)
            if scope.cancelled_caught:
                logger.warning(
                    "Tool connection did not close within %ss",
                    self._settings.cleanup_timeout_seconds,
                )

        if state.run_id is None:
            return
        # Both calls log and swallow their own failures.
        await self._runs.add_run_costs(
            state.run_id, state.usage.cost_items(self._settings.cost_name_prefix)
        )
        await self._runs.update_run_status(
            state.run_id, "completed" if state.completed else "failed"
        )
