"""Relay exception hierarchy.

Base exceptions for all application layers with correlation ID support.

Usage:
    from relay.exceptions import ToolCallError

    try:
        result = await connection.call_tool(name, args)
    except ToolCallError as e:
        logger.warning("Tool failed (correlation_id=%s)", e.correlation_id)
"""

import uuid
from typing import Any


class RelayError(Exception):
    """Base exception for all relay application errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class DALError(RelayError):
    """Errors from data access layer operations."""

    pass


class LLMError(RelayError):
    """Errors from the model provider."""

    def __init__(self, message: str, *, provider: str | None = None, **kwargs):
        self.provider = provider
        super().__init__(message, **kwargs)


class ToolConnectionError(RelayError):
    """Remote tool server could not be reached or listed."""

    def __init__(self, message: str, *, server_url: str | None = None, **kwargs):
        self.server_url = server_url
        super().__init__(message, **kwargs)


class ToolCallError(RelayError):
    """A single remote tool invocation failed."""

    def __init__(
        self,
        message: str,
        tool: str,
        details: dict[str, Any] | None = None,
        **kwargs,
    ):
        self.tool = tool
        self.details = details or {}
        super().__init__(message, **kwargs)


class KeyServiceError(RelayError):
    """Errors from the key service when decrypting app keys."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class SessionOwnershipError(RelayError):
    """Session does not exist or belongs to another org, user, or app."""

    pass


class ValidationError(RelayError):
    """Errors from input validation (beyond Pydantic)."""

    pass


class ConfigurationError(RelayError):
    """Errors from application configuration."""

    pass
