"""App configuration endpoints."""

import logging

from fastapi import APIRouter, Depends, Request

from relay.api.deps import RequestScope, get_request_scope
from relay.api.rate_limit import limiter
from relay.api.schemas import AppConfigRequest, AppConfigResponse
from relay.dal import AppConfigRepository
from relay.storage import get_committing_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Apps"])


@router.put("/apps/{app_id}/config", response_model=AppConfigResponse)
@limiter.limit("30/minute")
async def put_app_config(
    request: Request,
    app_id: str,
    body: AppConfigRequest,
    scope: RequestScope = Depends(get_request_scope),
) -> AppConfigResponse:
    """Register or replace an app's configuration for the caller's org.

    Idempotent: repeating the same body leaves the stored config unchanged.
    """
    async with get_committing_session() as session:
        config = await AppConfigRepository(session).upsert(
            app_id=app_id,
            org_id=scope.org_id,
            system_prompt=body.system_prompt,
            mcp_server_url=str(body.mcp_server_url) if body.mcp_server_url else None,
            mcp_key_name=body.mcp_key_name,
        )
    logger.info("Stored config for app %s (org %s)", app_id, scope.org_id)
    return AppConfigResponse.model_validate(config)
