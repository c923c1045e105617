"""
Rate limiting with slowapi.

Requests are keyed by the authenticated user when the auth dependency has
run, otherwise by client IP. Counters live in Redis when REDIS_URL is set
and in process memory otherwise.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """user:<id> once authenticated, ip:<addr> otherwise"""
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


# Endpoint-specific limits
ENDPOINT_LIMITS = {
    'register': "5/minute",
    'login': "10/minute",
    'forgot_password': "3/minute",
    'reset_password': "5/minute",
    'membership_search': "30/minute",
    'payment': "20/minute",
}


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.rate_limit_storage_uri,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


def endpoint_limit(name: str):
    """Decorator applying one of ENDPOINT_LIMITS to a route"""
    return limiter.limit(ENDPOINT_LIMITS[name], key_func=get_user_identifier)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 with a Retry-After header matching the limit's window"""
    retry_after = str(exc.limit.limit.get_expiry())

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)} on {request.url.path}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": retry_after},
    )
