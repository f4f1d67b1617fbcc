"""Request and response schemas for the HTTP API.

Wire names are camelCase; Python attributes are snake_case.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

MAX_MESSAGE_LENGTH = 50_000


class ChatRequest(BaseModel):
    """Body of ``POST /chat``."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    session_id: UUID | None = Field(default=None, alias="sessionId")
    app_id: str = Field(..., min_length=1, max_length=255, alias="appId")
    context: dict[str, Any] | None = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message must not be blank")
        return v


class AppConfigRequest(BaseModel):
    """Body of ``PUT /apps/{app_id}/config``."""

    model_config = ConfigDict(populate_by_name=True)

    system_prompt: str = Field(..., min_length=1, alias="systemPrompt")
    mcp_server_url: HttpUrl | None = Field(default=None, alias="mcpServerUrl")
    mcp_key_name: str | None = Field(default=None, min_length=1, max_length=255, alias="mcpKeyName")


class AppConfigResponse(BaseModel):
    """Stored app configuration."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    app_id: str = Field(..., alias="appId")
    org_id: str = Field(..., alias="orgId")
    system_prompt: str = Field(..., alias="systemPrompt")
    mcp_server_url: str | None = Field(default=None, alias="mcpServerUrl")
    mcp_key_name: str | None = Field(default=None, alias="mcpKeyName")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    service: str
    version: str
