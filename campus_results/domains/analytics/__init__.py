# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics domain services.

This package provides:
- AnalyticsService: class distribution, retake cohort, campus overview
- DropoutRiskService: per-student risk score written after publication
- register_risk_subscriber: wires the risk recomputation to result events
"""

from campus_results.domains.analytics.events import register_risk_subscriber
from campus_results.domains.analytics.risk import DropoutRiskService, dropout_risk
from campus_results.domains.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "DropoutRiskService",
    "dropout_risk",
    "register_risk_subscriber",
]
