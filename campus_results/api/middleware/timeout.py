# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-request deadline.

Requests running past api.request_timeout_seconds are cancelled and
answered with 503. Work a service already committed stays committed;
batch endpoints report their own progress within their own deadline.
"""

import asyncio
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from campus_results.api.errors import error_response
from campus_results.utils.logging import get_logger

logger = get_logger(__name__)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Cancel requests exceeding a deadline."""

    def __init__(self, app: ASGIApp, timeout_seconds: float) -> None:
        super().__init__(app)
        self._timeout = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        try:
            async with asyncio.timeout(self._timeout):
                return await call_next(request)
        except TimeoutError:
            logger.error("request_timeout", path=request.url.path, timeout_seconds=self._timeout)
            return error_response(
                503,
                "transient",
                "Request timed out",
                {"retry_safe": False},
            )
