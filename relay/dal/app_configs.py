"""App configuration repository."""

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from relay.storage.entities import AppConfig


class AppConfigRepository:
    """Repository for AppConfig lookups and upserts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, app_id: str, org_id: str) -> AppConfig | None:
        result = await self.session.execute(
            select(AppConfig).where(AppConfig.app_id == app_id, AppConfig.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        app_id: str,
        org_id: str,
        system_prompt: str,
        mcp_server_url: str | None = None,
        mcp_key_name: str | None = None,
    ) -> AppConfig:
        """Create or replace the configuration for (app_id, org_id).

        Optional fields left as None clear any previously stored value.
        """
        config = await self.get(app_id, org_id)
        if config is None:
            config = AppConfig(id=uuid4(), app_id=app_id, org_id=org_id, system_prompt=system_prompt)
            self.session.add(config)
        config.system_prompt = system_prompt
        config.mcp_server_url = mcp_server_url
        config.mcp_key_name = mcp_key_name

        await self.session.flush()
        await self.session.refresh(config)
        return config
