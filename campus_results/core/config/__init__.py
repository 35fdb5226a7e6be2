# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for Campus Results.

Example:
    >>> from campus_results.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from campus_results.core.config.settings import (
    APISettings,
    DatabaseSettings,
    JWTSettings,
    RateLimitSettings,
    RiskSettings,
    Settings,
    WorkflowSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "JWTSettings",
    "RateLimitSettings",
    "APISettings",
    "WorkflowSettings",
    "RiskSettings",
]
