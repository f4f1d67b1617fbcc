"""Data access layer: repositories over the relay entities."""

from relay.dal.app_configs import AppConfigRepository
from relay.dal.sessions import ChatSessionRepository, MessageRepository

__all__ = [
    "AppConfigRepository",
    "ChatSessionRepository",
    "MessageRepository",
]
