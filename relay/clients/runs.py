"""Runs service client: run lifecycle and cost metering.

Every call is best-effort. Failures are logged and swallowed so metering
never affects the chat response.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from relay.streaming.usage import CostItem

logger = logging.getLogger(__name__)

RunStatus = Literal["completed", "failed"]


class Run(BaseModel):
    """A run as returned by the runs service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    status: str | None = None
    task_name: str | None = Field(default=None, alias="taskName")


class RunsClient:
    """Client for the runs service.

    Without an API key every method logs a warning once and does nothing.

    Args:
        base_url: Runs service root URL.
        api_key: ``X-API-Key`` value; empty disables metering.
        service_name: Reported as the run's service.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        service_name: str = "chat-service",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.service_name = service_name
        self._timeout = timeout
        self._transport = transport
        self._warned = False

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def create_run(
        self, *, org_id: str, user_id: str, app_id: str, task_name: str = "chat"
    ) -> Run | None:
        data = await self._request(
            "POST",
            "/v1/runs",
            {
                "orgId": org_id,
                "userId": user_id,
                "appId": app_id,
                "serviceName": self.service_name,
                "taskName": task_name,
            },
        )
        if not data:
            return None
        try:
            return Run.model_validate(data)
        except ValueError:
            logger.warning("Runs service returned an unexpected run payload: %r", data)
            return None

    async def update_run_status(self, run_id: str, status: RunStatus) -> None:
        await self._request("PATCH", f"/v1/runs/{run_id}", {"status": status})

    async def add_run_costs(self, run_id: str, items: list[CostItem]) -> None:
        if not items:
            return
        await self._request(
            "POST",
            f"/v1/runs/{run_id}/costs",
            {"items": [item.to_dict() for item in items]},
        )

    async def _request(self, method: str, path: str, body: dict[str, Any]) -> Any:
        if not self.enabled:
            if not self._warned:
                logger.warning("RUNS_SERVICE_API_KEY is not set, skipping run metering")
                self._warned = True
            return None

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, path, json=body, headers={"X-API-Key": self._api_key}
                )
            response.raise_for_status()
            return response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Runs service %s %s failed: %s", method, path, e)
            return None
