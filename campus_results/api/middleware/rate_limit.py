# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting using slowapi.

Only the unauthenticated verification lookup is limited, per client IP.

Example:
    @router.get("/results/verify/{token}")
    @limiter.limit(verification_rate)
    async def verify_result(request: Request, token: str):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from campus_results.api.errors import error_response
from campus_results.core.config import get_settings
from campus_results.utils.logging import get_logger

logger = get_logger(__name__)


def verification_rate() -> str:
    """Limit string for verification lookups, read from settings."""
    return f"{get_settings().rate_limit.verification_per_minute}/minute"


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_settings().rate_limit.storage_uri,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Answer 429 in the common error envelope."""
    logger.warning("rate_limit_exceeded", path=request.url.path, client=get_remote_address(request), limit=str(exc.detail))
    return error_response(
        429,
        "rate_limited",
        "Too many requests. Please try again later.",
        {"limit": str(exc.detail)},
        headers={"Retry-After": "60"},
    )
