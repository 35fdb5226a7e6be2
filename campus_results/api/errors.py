# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mapping of engine errors to HTTP responses.

Every error body has the same shape:

    {"error": {"kind": "conflict", "message": "...", "details": {...}}}
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from campus_results.core.errors import ResultEngineError
from campus_results.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND: dict[str, int] = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "authorization": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "locked": status.HTTP_423_LOCKED,
    "transient": status.HTTP_503_SERVICE_UNAVAILABLE,
}

_KIND_BY_HTTP_STATUS: dict[int, str] = {
    status.HTTP_401_UNAUTHORIZED: "authentication",
    status.HTTP_403_FORBIDDEN: "authorization",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


def error_response(
    status_code: int,
    kind: str,
    message: str,
    details: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a JSON error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message, "details": jsonable_encoder(details or {})}},
        headers=headers,
    )


async def engine_error_handler(request: Request, exc: ResultEngineError) -> JSONResponse:
    """Translate a ResultEngineError by its kind."""
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, kind=exc.kind, error=exc.message)
    else:
        logger.info("request_rejected", path=request.url.path, kind=exc.kind, error=exc.message)
    return error_response(status_code, exc.kind, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Shape FastAPI's request validation errors like engine ValidationErrors."""
    errors = jsonable_encoder(exc.errors())
    field = None
    if errors:
        location = [str(part) for part in errors[0].get("loc", []) if part not in ("body", "query", "path")]
        field = ".".join(location) or None
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation",
        "Request validation failed",
        {"field": field, "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep the error envelope for framework-level HTTP errors (401, 404 on unknown routes)."""
    kind = _KIND_BY_HTTP_STATUS.get(exc.status_code, "error")
    return error_response(exc.status_code, kind, str(exc.detail), headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on an application."""
    app.add_exception_handler(ResultEngineError, engine_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
