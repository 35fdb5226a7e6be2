# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type definitions for Campus Results.

Adding a new event:
1. Add a constant to the appropriate class here
2. Publish it from the owning service
3. Register subscribers in the application lifespan
"""


class EventTypes:
    """All event types emitted by the result engine, by domain."""

    class Result:
        """Result workflow events."""

        PUBLISHED = "result.published"
        CORRECTED = "result.corrected"
