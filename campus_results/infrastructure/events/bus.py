# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for Campus Results.

Services publish events after their unit of work commits; subscribers
(the dropout-risk recomputation, for instance) run with their own
failure isolation. A failing handler is logged and never reaches the
publisher.

Example:
    from campus_results.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()

    async def on_published(event):
        print(event.payload["result_id"])

    event_bus.subscribe(EventTypes.Result.PUBLISHED, on_published)

    await event_bus.publish(
        EventTypes.Result.PUBLISHED,
        {"result_id": "abc", "student_id": "S1"},
        campus_id="T1",
    )
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from campus_results.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["EventData"], Awaitable[None]]


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
        campus_id: Campus the event belongs to.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    campus_id: str | None = None


class EventBus:
    """In-memory async event bus keyed by exact event type.

    Designed for single-process async use.

    Attributes:
        _handlers: Dictionary mapping event types to handler lists.
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: dict[str, list[EventHandler]] = {}
        self._failure_count = 0

    @property
    def failures(self) -> int:
        """Handler invocations that raised since the bus was created."""
        return self._failure_count

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: Event type string, e.g. EventTypes.Result.PUBLISHED.
            handler: Async function to call when event is published.
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        campus_id: str | None = None,
    ) -> EventData:
        """Publish an event to every subscriber of its type.

        Handlers are called concurrently using asyncio.gather.
        Errors in individual handlers are logged but don't stop
        other handlers from executing.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.
            campus_id: Campus the event belongs to.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload, campus_id=campus_id)

        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            logger.debug("No handlers for event: %s (campus: %s)", event_type, campus_id)
            return event

        logger.debug(
            "Publishing event %s to %d handlers (campus: %s)",
            event_type,
            len(handlers),
            campus_id,
        )

        async def safe_call(handler: EventHandler) -> None:
            """Call handler with error handling."""
            try:
                await handler(event)
            except Exception as e:
                self._failure_count += 1
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*[safe_call(handler) for handler in handlers])
        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the singleton event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the event bus singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
