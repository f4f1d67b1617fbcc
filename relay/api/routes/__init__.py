"""API route registration."""

from fastapi import APIRouter

from relay.api.routes.apps import router as apps_router
from relay.api.routes.chat import router as chat_router
from relay.api.routes.health import router as health_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(apps_router)
api_router.include_router(chat_router)

__all__ = ["api_router"]
