# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Final transcript domain - snapshots taken when a semester is locked."""

from campus_results.domains.final_transcript.service import (
    FinalTranscriptService,
    competition_ranks,
)

__all__ = ["FinalTranscriptService", "competition_ranks"]
