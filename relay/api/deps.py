"""FastAPI dependencies and chat service wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, Request

from relay.clients.keys import CallerInfo, KeyServiceClient
from relay.clients.runs import RunsClient
from relay.exceptions import ConfigurationError
from relay.llm.gemini import GeminiChatModel
from relay.mcp.client import McpToolConnector
from relay.settings import Settings
from relay.storage import get_committing_session
from relay.streaming.orchestrator import TurnOrchestrator

logger = logging.getLogger(__name__)

GEMINI_KEY_PROVIDER = "gemini"


@dataclass(frozen=True)
class RequestScope:
    """Org and user a request acts for, taken from the scoping headers."""

    org_id: str
    user_id: str


def get_request_scope(
    x_org_id: Annotated[str | None, Header(alias="x-org-id")] = None,
    x_user_id: Annotated[str | None, Header(alias="x-user-id")] = None,
) -> RequestScope:
    if not x_org_id or not x_user_id:
        raise HTTPException(status_code=400, detail="Missing x-org-id or x-user-id header")
    return RequestScope(org_id=x_org_id, user_id=x_user_id)


def get_orchestrator(request: Request) -> TurnOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Chat service is not ready")
    return orchestrator


def build_key_client(settings: Settings) -> KeyServiceClient:
    return KeyServiceClient(
        settings.key_service_url,
        settings.key_service_api_key.get_secret_value(),
        app_id=settings.key_service_app_id,
        timeout=settings.http_timeout_seconds,
    )


async def resolve_gemini_api_key(settings: Settings, key_client: KeyServiceClient) -> str:
    """Resolve the Gemini key once at startup.

    ``GEMINI_API_KEY`` wins; otherwise the key service is asked.

    Raises:
        ConfigurationError: Neither source produced a key.
    """
    configured = settings.gemini_api_key.get_secret_value()
    if configured:
        return configured

    caller = CallerInfo(service=settings.service_name, method="STARTUP", path="/")
    try:
        decrypted = await key_client.decrypt_app_key(GEMINI_KEY_PROVIDER, caller)
    except Exception as e:
        raise ConfigurationError(
            "No GEMINI_API_KEY set and the key service could not provide one"
        ) from e
    logger.info("Gemini API key resolved from the key service")
    return decrypted.key


def build_orchestrator(settings: Settings, gemini_api_key: str) -> TurnOrchestrator:
    """Assemble the orchestrator and its collaborators for this process."""
    key_client = build_key_client(settings)
    return TurnOrchestrator(
        model=GeminiChatModel(
            gemini_api_key,
            model=settings.gemini_model,
            thinking_level=settings.gemini_thinking_level,
        ),
        session_factory=get_committing_session,
        runs_client=RunsClient(
            settings.runs_service_url,
            settings.runs_service_api_key.get_secret_value(),
            service_name=settings.service_name,
            timeout=settings.http_timeout_seconds,
        ),
        settings=settings,
        tool_connector=McpToolConnector(
            key_client,
            caller=CallerInfo(service=settings.service_name, method="POST", path="/chat"),
            timeout=settings.mcp_timeout_seconds,
        ),
    )
