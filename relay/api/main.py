"""FastAPI application configuration and setup.

Main entry point for the HTTP API with CORS, middleware, rate limiting,
and lifecycle management.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from relay import __version__
from relay.api.deps import build_key_client, build_orchestrator, resolve_gemini_api_key
from relay.api.rate_limit import MAX_REQUEST_BODY_BYTES, limiter
from relay.api.routes import api_router
from relay.exceptions import (
    ConfigurationError,
    KeyServiceError,
    RelayError,
    SessionOwnershipError,
    ValidationError,
)
from relay.logging_config import configure_logging
from relay.settings import Settings, get_settings
from relay.storage import close_db, init_db

# Context variable for correlation ID (async-safe)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Singleton app instance
_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup resolves the Gemini credential once and builds the chat
    orchestrator; shutdown closes database connections. Both are skipped in
    the testing environment, where tests inject their own orchestrator.
    """
    settings = get_settings()

    if settings.environment != "testing":
        configure_logging()
        await init_db()
        api_key = await resolve_gemini_api_key(settings, build_key_client(settings))
        app.state.orchestrator = build_orchestrator(settings, api_key)

    yield

    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional settings override (uses get_settings() if not provided)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Relay",
        description="Streaming chat relay for Gemini with MCP tools",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    allowed_headers = ["*"] if settings.environment in ("development", "testing") else [
        "Content-Type", "X-Correlation-ID", "x-org-id", "x-user-id",
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=allowed_headers,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.middleware("http")(_body_size_limit_middleware)
    app.middleware("http")(_correlation_middleware)

    # Lazy import to avoid circular dependency
    from relay.api.middleware import RequestTracingMiddleware

    app.add_middleware(RequestTracingMiddleware)

    app.include_router(api_router)

    _register_exception_handlers(app, settings)

    return app


def _get_allowed_origins(settings: Settings) -> list[str]:
    """Explicit ALLOWED_ORIGINS wins; otherwise open in development and testing only."""
    if settings.allowed_origins:
        return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.environment in ("development", "testing"):
        return ["*"]
    return []


async def _body_size_limit_middleware(request: Request, call_next):
    """Reject requests whose declared body exceeds MAX_REQUEST_BODY_BYTES."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_BODY_BYTES:
        return JSONResponse(
            status_code=413,
            content={
                "error": {
                    "code": 413,
                    "message": f"Request body too large. Maximum size is {MAX_REQUEST_BODY_BYTES} bytes.",
                    "type": "request_too_large",
                }
            },
        )
    return await call_next(request)


async def _correlation_middleware(request: Request, call_next):
    """Generate or propagate the X-Correlation-ID of each request."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    _correlation_id.set(correlation_id)

    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


def get_correlation_id() -> str | None:
    """Get the current request's correlation ID from context."""
    return _correlation_id.get()


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    logger = structlog.get_logger()

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Reject malformed bodies with 400 and the offending fields."""
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        details = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": details},
            headers={"X-Correlation-ID": correlation_id},
        )

    @app.exception_handler(RelayError)
    async def relay_error_handler(
        request: Request,
        exc: RelayError,
    ) -> JSONResponse:
        """Handle application errors with correlation ID."""
        correlation_id = exc.correlation_id or get_correlation_id() or str(uuid.uuid4())
        error_type = exc.__class__.__name__.replace("Error", "_error").lower()

        status_code = 500
        if isinstance(exc, ValidationError):
            status_code = 400
        elif isinstance(exc, SessionOwnershipError):
            status_code = 404
        elif isinstance(exc, KeyServiceError):
            status_code = 502
        elif isinstance(exc, ConfigurationError):
            status_code = 500

        logger.error(
            "Relay error",
            error_type=error_type,
            correlation_id=correlation_id,
            exc_info=exc,
        )

        message = str(exc) if settings.debug else f"An error occurred. Correlation ID: {correlation_id}"
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "code": status_code,
                    "message": message,
                    "type": error_type,
                    "correlation_id": correlation_id,
                }
            },
            headers={"X-Correlation-ID": correlation_id},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request,
        exc: HTTPException,
    ) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.status_code,
                    "message": exc.detail,
                    "type": "http_error",
                    "correlation_id": correlation_id,
                }
            },
            headers={"X-Correlation-ID": correlation_id},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        logger.exception(
            "Unhandled exception",
            correlation_id=correlation_id,
            exc_info=exc,
        )
        detail = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": 500,
                    "message": detail,
                    "type": "internal_error",
                    "correlation_id": correlation_id,
                }
            },
            headers={"X-Correlation-ID": correlation_id},
        )


def get_app() -> FastAPI:
    """Get or create the singleton FastAPI application."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: "relay.api.main:get_app" with --factory, or "relay.api.main:app"
# which initializes lazily on first access.
def __getattr__(name: str) -> Any:
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
