"""Chat session entity.

A session groups the messages of one conversation and is scoped to the org,
user and app that created it.
"""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relay.storage.models import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from relay.storage.entities.message import Message


class ChatSession(Base, UUIDMixin, TimestampMixin):
    """A conversation between one user and one app."""

    __tablename__ = "chat_session"

    org_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    app_id: Mapped[str] = mapped_column(String(255), nullable=False)

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )

    def is_owned_by(self, *, org_id: str, user_id: str, app_id: str) -> bool:
        return self.org_id == org_id and self.user_id == user_id and self.app_id == app_id

    def __repr__(self) -> str:
        return f"<ChatSession(id={self.id}, org_id={self.org_id!r}, app_id={self.app_id!r})>"
