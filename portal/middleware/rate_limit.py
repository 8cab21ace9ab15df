### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Rate Limiting Middleware -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Rate Limiting Middleware

Per-API-key rate limiting using slowapi. Keys are identified by their
12-character prefix; requests without a key are limited per client IP.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from portal.config import get_settings


def get_api_key_identifier(request: Request) -> str:
    """
    Get rate limit identifier from API key.
    Falls back to IP address if no key present.
    """
    api_key = request.headers.get("X-API-Key", "")
    if api_key:
        return f"key:{api_key[:12]}"
    return f"ip:{get_remote_address(request)}"


# Create limiter instance
limiter = Limiter(
    key_func=get_api_key_identifier,
    default_limits=[f"{get_settings().rate_limit_per_minute}/minute"],
    storage_uri="memory://",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors"""
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": f"Rate limit exceeded. {exc.detail}",
            "code": "rate_limited",
            "retryable": True,
            "request_id": getattr(request.state, "request_id", None),
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )
