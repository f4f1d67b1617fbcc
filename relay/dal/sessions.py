"""Chat session and message repositories."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from relay.exceptions import DALError
from relay.storage.entities import MESSAGE_ROLES, ChatSession, Message


class ChatSessionRepository:
    """Repository for ChatSession CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, *, org_id: str, user_id: str, app_id: str) -> ChatSession:
        """Create a new session scoped to org, user and app."""
        chat_session = ChatSession(id=uuid4(), org_id=org_id, user_id=user_id, app_id=app_id)
        self.session.add(chat_session)
        await self.session.flush()
        return chat_session

    async def get_by_id(self, session_id: UUID) -> ChatSession | None:
        result = await self.session.execute(select(ChatSession).where(ChatSession.id == session_id))
        return result.scalar_one_or_none()


class MessageRepository:
    """Repository for Message operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        session_id: UUID,
        role: str,
        content: str,
        tool_calls: list[dict[str, Any]] | None = None,
        buttons: list[dict[str, str]] | None = None,
        token_count: int | None = None,
        run_id: str | None = None,
    ) -> Message:
        """Append a message to a session.

        Raises:
            DALError: ``role`` is not one of user, assistant, tool.
        """
        if role not in MESSAGE_ROLES:
            raise DALError(f"Invalid message role: {role!r}")

        message = Message(
            id=uuid4(),
            session_id=session_id,
            role=role,
            content=content,
            tool_calls=tool_calls,
            buttons=buttons,
            token_count=token_count,
            run_id=run_id,
        )
        self.session.add(message)
        await self.session.flush()
        return message

    async def list_history(self, session_id: UUID) -> list[Message]:
        """User and assistant messages of a session, oldest first.

        Tool-only messages are not part of the model history.
        """
        query = (
            select(Message)
            .where(Message.session_id == session_id, Message.role != "tool")
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
