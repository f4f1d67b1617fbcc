"""Message entity model."""

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relay.storage.models import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from relay.storage.entities.chat_session import ChatSession

MESSAGE_ROLES = ("user", "assistant", "tool")


class Message(Base, UUIDMixin, TimestampMixin):
    """One turn of a chat session.

    Assistant messages carry the tool calls made while producing them, the
    quick-reply buttons parsed from their tail, the summed token usage and
    the metering run they were billed to.
    """

    __tablename__ = "message"

    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("chat_session.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Message author: user, assistant, tool",
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tool_calls: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONB,
        nullable=True,
        doc="Remote tool calls: [{name, args, result}]",
    )
    buttons: Mapped[list[dict[str, str]] | None] = mapped_column(
        JSONB,
        nullable=True,
        doc="Quick-reply buttons: [{label, value}]",
    )
    token_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    run_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        doc="Runs service run this message was metered under",
    )

    session: Mapped["ChatSession"] = relationship("ChatSession", back_populates="messages")

    def __repr__(self) -> str:
        content_preview = self.content[:50] if self.content else ""
        return f"<Message(role={self.role!r}, content={content_preview!r}...)>"
