# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

structlog loggers (HTTP layer) and standard library loggers (services,
background subscribers) share one handler, so every line carries the
bound request, caller, campus and result context. Verification tokens,
including the one in the public verification path, are shortened before
anything is rendered.

Example:
    >>> from campus_results.utils.logging import setup_logging, get_logger, log_context
    >>> from campus_results.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> with log_context(result_id="abc", campus_id="T1"):
    ...     logger.info("Result published")
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from campus_results.core.config.settings import Settings

SERVICE_NAME = "campus-results"
HANDLER_NAME = "campus_results"

TOKEN_KEYS = frozenset({"verification_token", "token", "authorization"})
_VERIFY_PATH = re.compile(r"(/verify/)([^/?\s]+)")


def mask_token(token: str) -> str:
    """Keep the first six characters of a token, e.g. 'Xk3v9Q...'."""
    return token[:6] + "..." if len(token) > 6 else "..."


def mask_tokens(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor shortening verification tokens in known keys and in verification paths."""
    for key in TOKEN_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = mask_token(value)
    for key in ("path", "event"):
        value = event_dict.get(key)
        if isinstance(value, str) and "/verify/" in value:
            event_dict[key] = _VERIFY_PATH.sub(lambda m: m.group(1) + mask_token(m.group(2)), value)
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor tagging every line with the service name."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Sets up structlog with appropriate processors based on environment:
    - Development: Colored console output with pretty formatting
    - Production: JSON output for log aggregation

    Calling it again replaces the handler installed by the previous call.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        add_service,
        mask_tokens,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.debug:
        rendering: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        rendering = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *rendering],
        )
    )
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # Third-party loggers stay at WARNING
    for logger_name in [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "sqlalchemy",
        "aiosqlite",
        "asyncio",
        "slowapi",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("campus_results").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Used by the HTTP layer to attach request_id, user_id and campus_id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables at the end of a request."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_context(**kwargs: object) -> Iterator[None]:
    """Bind context for the duration of a block, restoring the previous values after.

    Background work (a dropout-risk recomputation, for instance) uses it
    to tag its lines with the result it is working on.
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
