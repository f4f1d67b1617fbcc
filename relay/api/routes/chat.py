"""Chat endpoint: one user message in, an SSE stream out."""

from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from relay.api.deps import RequestScope, get_orchestrator, get_request_scope
from relay.api.rate_limit import CHAT_RATE_LIMIT, limiter
from relay.api.schemas import ChatRequest
from relay.dal import AppConfigRepository
from relay.storage import get_session
from relay.streaming.events import ChatEvent
from relay.streaming.orchestrator import TurnOrchestrator
from relay.streaming.state import AppConfigSnapshot, ChatTurnRequest

router = APIRouter(tags=["Chat"])


async def _sse(events: AsyncGenerator[ChatEvent, None]) -> AsyncGenerator[str, None]:
    async for event in events:
        yield event.to_sse()


@router.post("/chat", response_model=None)
@limiter.limit(CHAT_RATE_LIMIT)
async def chat(
    request: Request,
    body: ChatRequest,
    scope: RequestScope = Depends(get_request_scope),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Stream the assistant's reply as Server-Sent Events.

    Each frame is ``data: <json>``; the stream ends with ``data: [DONE]``.
    """
    async with get_session() as session:
        app_config = await AppConfigRepository(session).get(body.app_id, scope.org_id)
    if app_config is None:
        raise HTTPException(
            status_code=404,
            detail=f"No config registered for app {body.app_id}. Call PUT /apps/{body.app_id}/config first.",
        )

    turn = ChatTurnRequest(
        message=body.message,
        app_id=body.app_id,
        org_id=scope.org_id,
        user_id=scope.user_id,
        session_id=body.session_id,
        context=body.context,
        app_config=AppConfigSnapshot(
            system_prompt=app_config.system_prompt,
            mcp_server_url=app_config.mcp_server_url,
            mcp_key_name=app_config.mcp_key_name,
        ),
    )
    return StreamingResponse(
        _sse(orchestrator.stream(turn)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
