"""Per-app configuration: system prompt and optional MCP server."""

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from relay.storage.models import Base, TimestampMixin, UUIDMixin


class AppConfig(Base, UUIDMixin, TimestampMixin):
    """Configuration registered by an app, unique per (app_id, org_id)."""

    __tablename__ = "app_config"
    __table_args__ = (UniqueConstraint("app_id", "org_id", name="uq_app_config_app_id_org_id"),)

    app_id: Mapped[str] = mapped_column(String(255), nullable=False)
    org_id: Mapped[str] = mapped_column(String(255), nullable=False)
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    mcp_server_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    mcp_key_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Key service provider name holding the MCP credential",
    )

    def __repr__(self) -> str:
        return f"<AppConfig(app_id={self.app_id!r}, org_id={self.org_id!r})>"
