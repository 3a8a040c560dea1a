"""Rate limiting for the token service.

slowapi with Redis storage in deployed environments (``REDIS_URL``) and
in-process memory locally. Authenticated callers are limited per user,
anonymous ones per client IP.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


def _get_client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For is the original client behind the proxy
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def rate_limit_key(request: Request) -> str:
    """
    Key checkout limits by user when the bearer token has been verified.

    ``request.state.user`` is set by the ``get_current_user`` dependency,
    which runs before the limit is evaluated.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.user_id}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=rate_limit_key,
        storage_uri=settings.REDIS_URL,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Render a 429 in the same ``{"detail", "code"}`` shape as domain errors."""
    limit = str(exc.limit.limit) if getattr(exc, "limit", None) else exc.detail
    logger.warning("Rate limit %s exceeded for %s", limit, rate_limit_key(request))
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Too many requests. Limit is {limit}.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={"Retry-After": "60"},
    )


def _checkout_limit_value() -> str:
    return get_settings().CHECKOUT_RATE_LIMIT


def checkout_limit(func: Callable) -> Callable:
    """Apply the configurable checkout rate limit (CHECKOUT_RATE_LIMIT)."""
    return limiter.limit(_checkout_limit_value)(func)
