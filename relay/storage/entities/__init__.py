"""Database entity models."""

from relay.storage.entities.app_config import AppConfig
from relay.storage.entities.chat_session import ChatSession
from relay.storage.entities.message import MESSAGE_ROLES, Message
from relay.storage.models import Base

__all__ = [
    "MESSAGE_ROLES",
    "AppConfig",
    "Base",
    "ChatSession",
    "Message",
]
