# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the Campus Results API.

Run with:
    uvicorn campus_results.api.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from campus_results import __version__
from campus_results.api.errors import register_exception_handlers
from campus_results.api.middleware.auth import CallerMiddleware
from campus_results.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from campus_results.api.middleware.timeout import RequestTimeoutMiddleware
from campus_results.api.routes import health
from campus_results.api.v1 import router as v1_router
from campus_results.core.config import get_settings
from campus_results.domains.analytics import register_risk_subscriber
from campus_results.infrastructure.background import get_task_registry
from campus_results.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    get_sessionmaker,
    init_database,
)
from campus_results.infrastructure.events import get_event_bus
from campus_results.utils.logging import setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Initializes and cleans up:
    - Structured logging
    - Database connections
    - Dropout-risk subscriber on the event bus
    - Post-commit background tasks (drained on shutdown)

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting Campus Results API",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_database(settings)
        logger.info("Database connection initialized")
    except (DatabaseError, OSError) as e:
        logger.warning("Failed to initialize database connection: %s", str(e))

    try:
        register_risk_subscriber(get_event_bus(), get_sessionmaker(), settings)
        logger.info("Dropout-risk subscriber registered")
    except DatabaseError as e:
        logger.warning("Failed to register dropout-risk subscriber: %s", str(e))

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    registry = get_task_registry()
    await registry.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    if registry.pending:
        logger.warning("Cancelling %d background tasks", registry.pending)
        await registry.cancel_all()

    try:
        await close_database()
        logger.info("Database connection closed")
    except SQLAlchemyError as e:
        logger.warning("Error closing database connection: %s", str(e))

    logger.info("Shutting down Campus Results API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Campus Results API",
        description="Academic result lifecycle engine",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Disable automatic redirects from /path to /path/
        # This prevents 307 redirects that lose Authorization headers
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================

    app.state.limiter = limiter

    # =========================================================================
    # Exception handlers
    # =========================================================================

    register_exception_handlers(app)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================

    app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.api.request_timeout_seconds)
    app.add_middleware(CallerMiddleware, settings=settings.jwt)

    # =========================================================================
    # Routes
    # =========================================================================

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
