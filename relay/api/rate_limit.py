"""Rate limiting configuration for API endpoints.

Provides a shared Limiter instance that route modules import to apply
per-endpoint limits.

Rate limit tiers:
- Global default: 120/minute per IP
- Chat: 20/minute (each request drives the model and possibly tools)

Usage in route modules:
    from relay.api.rate_limit import limiter

    @router.post("/chat")
    @limiter.limit(CHAT_RATE_LIMIT)
    async def chat(request: Request, ...):
        ...
"""

from slowapi import Limiter
from starlette.requests import Request

DEFAULT_RATE_LIMIT = "120/minute"
CHAT_RATE_LIMIT = "20/minute"

# Maximum request body size (bytes)
MAX_REQUEST_BODY_BYTES = 1_048_576  # 1 MB


def _get_real_client_ip(request: Request) -> str:
    """Extract the client IP, respecting X-Forwarded-For from a reverse proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For: client, proxy1, proxy2 - take the leftmost
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(
    key_func=_get_real_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
)
