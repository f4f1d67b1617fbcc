"""Unit tests for API dependency wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from pydantic import SecretStr

from relay.api.deps import (
    GEMINI_KEY_PROVIDER,
    build_orchestrator,
    get_request_scope,
    resolve_gemini_api_key,
)
from relay.clients.keys import DecryptedKey
from relay.exceptions import ConfigurationError, KeyServiceError
from relay.streaming.orchestrator import TurnOrchestrator


class TestRequestScope:
    def test_both_headers_present(self):
        scope = get_request_scope(x_org_id="org", x_user_id="user")

        assert (scope.org_id, scope.user_id) == ("org", "user")

    @pytest.mark.parametrize(("org", "user"), [(None, "user"), ("org", None), ("", "")])
    def test_missing_header_is_400(self, org, user):
        with pytest.raises(HTTPException) as exc_info:
            get_request_scope(x_org_id=org, x_user_id=user)

        assert exc_info.value.status_code == 400


class TestResolveGeminiApiKey:
    @pytest.mark.asyncio
    async def test_configured_key_wins(self, test_settings):
        keys = MagicMock()
        keys.decrypt_app_key = AsyncMock()

        assert await resolve_gemini_api_key(test_settings, keys) == "test-gemini-key"
        keys.decrypt_app_key.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_key_service(self, test_settings):
        settings = test_settings.model_copy(update={"gemini_api_key": SecretStr("")})
        keys = MagicMock()
        keys.decrypt_app_key = AsyncMock(return_value=DecryptedKey("gemini", "from-service"))

        assert await resolve_gemini_api_key(settings, keys) == "from-service"
        assert keys.decrypt_app_key.call_args.args[0] == GEMINI_KEY_PROVIDER

    @pytest.mark.asyncio
    async def test_no_source_is_configuration_error(self, test_settings):
        settings = test_settings.model_copy(update={"gemini_api_key": SecretStr("")})
        keys = MagicMock()
        keys.decrypt_app_key = AsyncMock(side_effect=KeyServiceError("down", status_code=500))

        with pytest.raises(ConfigurationError):
            await resolve_gemini_api_key(settings, keys)


class TestBuildOrchestrator:
    def test_builds_from_settings(self, test_settings):
        orchestrator = build_orchestrator(test_settings, "test-gemini-key")

        assert isinstance(orchestrator, TurnOrchestrator)
