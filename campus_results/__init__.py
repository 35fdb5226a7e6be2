# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Campus Results - academic result lifecycle engine.

The engine ingests raw evaluation scores, drives them through the
DRAFT -> SUBMITTED -> PUBLISHED -> ARCHIVED workflow with per-period
locking, grades them against campus grading scales, issues verifiable
transcripts and derives class and campus analytics.
"""

__version__ = "1.0.0"
