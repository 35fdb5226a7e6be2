# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event subscribers of the analytics domain.

The dropout-risk recomputation listens to publication and correction
events. It runs after the publisher has committed and uses its own
session; its errors are logged by the event bus and never reach the
publishing caller.

Usage:
    from campus_results.domains.analytics import register_risk_subscriber

    register_risk_subscriber(get_event_bus(), get_sessionmaker())
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_results.core.config import Settings
from campus_results.domains.analytics.risk import DropoutRiskService
from campus_results.infrastructure.events import EventBus, EventData, EventHandler, EventTypes
from campus_results.utils.logging import log_context

logger = logging.getLogger(__name__)

RISK_TRIGGERS = (EventTypes.Result.PUBLISHED, EventTypes.Result.CORRECTED)


def register_risk_subscriber(
    bus: EventBus,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> EventHandler:
    """Subscribe the dropout-risk recomputation to result events.

    Args:
        bus: Event bus to subscribe on.
        session_factory: Factory for the subscriber's own sessions.
        settings: Settings carrying the risk configuration.

    Returns:
        The registered handler.
    """

    async def recompute_dropout_risk(event: EventData) -> None:
        result_id = event.payload.get("result_id")
        if not result_id:
            logger.warning("Event %s without result_id ignored", event.event_type)
            return
        with log_context(result_id=result_id, campus_id=event.campus_id, event_type=event.event_type):
            async with session_factory() as session:
                await DropoutRiskService(session, settings).recompute(result_id)
                await session.commit()

    for event_type in RISK_TRIGGERS:
        bus.subscribe(event_type, recompute_dropout_risk)
    logger.debug("Dropout-risk subscriber registered for %s", ", ".join(RISK_TRIGGERS))
    return recompute_dropout_risk
