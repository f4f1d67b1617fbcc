"""Gemini chat model via the google-genai SDK.

Streams ``generate_content_stream`` chunks and maps them onto turn events:
text parts become ``TokenEvent``, function-call parts ``FunctionCallEvent``
(thought signature passed through untouched) and the stream ends with one
``DoneEvent`` carrying the last usage metadata seen. Thought parts are
dropped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from relay.exceptions import LLMError
from relay.streaming.events import DoneEvent, FunctionCallEvent, TokenEvent
from relay.streaming.usage import Usage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from relay.llm.base import HistoryTurn, ToolDeclaration
    from relay.streaming.events import TurnEvent

logger = logging.getLogger(__name__)


def to_contents(history: list[HistoryTurn]) -> list[types.Content]:
    """Convert history turns into Gemini ``Content`` objects."""
    contents: list[types.Content] = []
    for turn in history:
        if turn.function_call is not None:
            call = turn.function_call
            part = types.Part(
                function_call=types.FunctionCall(name=call.name, args=call.args),
                thought_signature=call.thought_signature,
            )
        else:
            part = types.Part.from_text(text=turn.text or "")
        contents.append(types.Content(role=turn.role, parts=[part]))
    return contents


def to_usage(metadata: Any) -> Usage | None:
    """Map ``usage_metadata`` onto ``Usage``; missing counts are zero."""
    if metadata is None:
        return None
    prompt = metadata.prompt_token_count or 0
    output = metadata.candidates_token_count or 0
    return Usage(
        prompt_tokens=prompt,
        output_tokens=output,
        total_tokens=metadata.total_token_count or prompt + output,
    )


class GeminiChatModel:
    """Streaming Gemini client implementing ``relay.llm.base.ChatModel``.

    Args:
        api_key: Gemini API key, resolved once at startup.
        model: Model name, e.g. ``gemini-3-flash-preview``.
        thinking_level: ``"low"`` or ``"high"``.
        client: Pre-built client (tests).
    """

    provider = "google"

    def __init__(
        self,
        api_key: str = "",
        *,
        model: str,
        thinking_level: str = "high",
        client: genai.Client | None = None,
    ) -> None:
        if client is None and not api_key:
            raise LLMError("Gemini API key is not configured", provider=self.provider)
        self._client = client or genai.Client(api_key=api_key)
        self.model = model
        self.thinking_level = thinking_level

    async def stream_chat(
        self,
        history: list[HistoryTurn],
        user_message: str,
        *,
        tools: list[ToolDeclaration],
        system_prompt: str,
    ) -> AsyncGenerator[TurnEvent, None]:
        contents = to_contents(history)
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=user_message)]))
        async for event in self._stream(contents, tools, system_prompt):
            yield event

    async def stream_function_result(
        self,
        history: list[HistoryTurn],
        name: str,
        result: Any,
        *,
        tools: list[ToolDeclaration],
        system_prompt: str,
    ) -> AsyncGenerator[TurnEvent, None]:
        contents = to_contents(history)
        contents.append(
            types.Content(
                role="user",
                parts=[types.Part.from_function_response(name=name, response={"result": result})],
            )
        )
        async for event in self._stream(contents, tools, system_prompt):
            yield event

    def build_config(
        self, tools: list[ToolDeclaration], system_prompt: str
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            thinking_config=types.ThinkingConfig(thinking_level=self.thinking_level.upper()),
        )
        if tools:
            config.tools = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=tool.name,
                            description=tool.description,
                            parameters_json_schema=tool.parameters,
                        )
                        for tool in tools
                    ]
                )
            ]
        return config

    async def _stream(
        self,
        contents: list[types.Content],
        tools: list[ToolDeclaration],
        system_prompt: str,
    ) -> AsyncGenerator[TurnEvent, None]:
        usage: Usage | None = None
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=self.model,
                contents=contents,
                config=self.build_config(tools, system_prompt),
            )
            async for chunk in response:
                if chunk.usage_metadata is not None:
                    usage = to_usage(chunk.usage_metadata)
                for event in self._chunk_events(chunk):
                    yield event
        except genai_errors.APIError as e:
            raise LLMError(f"Gemini request failed: {e}", provider=self.provider) from e

        yield DoneEvent(usage=usage)

    @staticmethod
    def _chunk_events(chunk: types.GenerateContentResponse) -> list[TurnEvent]:
        if not chunk.candidates:
            return []
        content = chunk.candidates[0].content
        if content is None or not content.parts:
            return []

        events: list[TurnEvent] = []
        for part in content.parts:
            if part.thought:
                continue
            if part.text:
                events.append(TokenEvent(part.text))
            if part.function_call is not None:
                events.append(
                    FunctionCallEvent(
                        name=part.function_call.name or "",
                        args=dict(part.function_call.args or {}),
                        thought_signature=part.thought_signature,
                    )
                )
        return events
