"""Liveness endpoint."""

from fastapi import APIRouter

from relay import __version__
from relay.api.schemas import HealthResponse
from relay.settings import get_settings

router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe. Does not check dependencies."""
    return HealthResponse(service=get_settings().service_name, version=__version__)
