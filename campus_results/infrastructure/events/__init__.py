# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure for Campus Results.

Components:
- EventBus: In-memory pub/sub keyed by event type
- EventTypes: Centralized event type constants

Architecture:
    Service commit -> BackgroundTaskRegistry.spawn(EventBus.publish) -> subscribers
"""

from campus_results.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from campus_results.infrastructure.events.types import EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventTypes",
    "get_event_bus",
    "reset_event_bus",
]
