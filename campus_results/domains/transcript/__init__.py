# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Transcript domain - semester-grouped, coefficient-weighted averages."""

from campus_results.domains.transcript.service import (
    TranscriptService,
    build_semester,
    build_semesters,
)

__all__ = ["TranscriptService", "build_semester", "build_semesters"]
