# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP middleware for Campus Results."""

from campus_results.api.middleware.auth import CallerMiddleware, get_caller
from campus_results.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from campus_results.api.middleware.timeout import RequestTimeoutMiddleware

__all__ = [
    "CallerMiddleware",
    "RequestTimeoutMiddleware",
    "get_caller",
    "limiter",
    "rate_limit_exceeded_handler",
]
