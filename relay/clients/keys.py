"""Key service client: decrypt per-app provider keys."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from relay.exceptions import ConfigurationError, KeyServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecryptedKey:
    provider: str
    key: str


@dataclass(frozen=True)
class CallerInfo:
    """Identifies the caller in the key service's audit log."""

    service: str
    method: str
    path: str


class KeyServiceClient:
    """Client for ``GET /internal/app-keys/{provider}/decrypt``.

    Args:
        base_url: Key service root URL.
        api_key: Service-to-service API key.
        app_id: App whose keys are decrypted.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        app_id: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.app_id = app_id
        self._timeout = timeout
        self._transport = transport

    async def decrypt_app_key(self, provider: str, caller: CallerInfo) -> DecryptedKey:
        """Fetch the decrypted key for ``provider``.

        Raises:
            ConfigurationError: No key service API key is configured.
            KeyServiceError: The request failed or returned a non-200 status.
        """
        if not self._api_key:
            raise ConfigurationError("KEY_SERVICE_API_KEY is not set")

        headers = {
            "x-api-key": self._api_key,
            "X-Caller-Service": caller.service,
            "X-Caller-Method": caller.method,
            "X-Caller-Path": caller.path,
        }
        path = f"/internal/app-keys/{quote(provider, safe='')}/decrypt"

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(path, params={"appId": self.app_id}, headers=headers)
        except httpx.HTTPError as e:
            raise KeyServiceError(f"Key service request failed: {type(e).__name__}") from e

        if response.status_code != 200:
            raise KeyServiceError(
                f"Key service returned HTTP {response.status_code} for {provider}",
                status_code=response.status_code,
            )

        data = response.json()
        key = data.get("key")
        if not key:
            raise KeyServiceError(f"Key service returned no key for {provider}")
        logger.debug("Decrypted %s key for app %s", provider, self.app_id)
        return DecryptedKey(provider=data.get("provider", provider), key=key)
