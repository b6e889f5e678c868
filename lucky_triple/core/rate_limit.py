"""
Request rate limiting (slowapi).

Decorated endpoints must accept a ``request: Request`` parameter.

    @router.post("/login")
    @limiter.limit(AUTH_LIMIT)
    async def login(request: Request, ...):
        ...
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from lucky_triple.core.config import settings

DEFAULT_LIMIT = "60/minute"
AUTH_LIMIT = "10/minute"
GAME_LIMIT = "30/minute"


def get_rate_limit_key(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[DEFAULT_LIMIT],
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)
