# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background work for Campus Results."""

from campus_results.infrastructure.background.registry import (
    BackgroundTaskRegistry,
    get_task_registry,
    reset_task_registry,
)

__all__ = [
    "BackgroundTaskRegistry",
    "get_task_registry",
    "reset_task_registry",
]
