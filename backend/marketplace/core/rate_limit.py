"""
Request rate limiting
slowapi limits per client IP; routes in the same bucket share one counter
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from marketplace.core.deps import client_ip
from marketplace.core.errors import RateLimitError, app_error_handler


def get_rate_limit_key(request: Request) -> str:
    return client_ip(request)


# In-memory storage: counts are per process
limiter = Limiter(key_func=get_rate_limit_key)

RATE_LIMITS = {
    "cart": "60/minute",
    "checkout": "10/minute",
    "review_vote": "30/minute",
}


def rate_limit(bucket: str):
    """Decorator for an endpoint taking `request: Request`"""
    return limiter.shared_limit(RATE_LIMITS[bucket], scope=bucket)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return await app_error_handler(request, RateLimitError())
