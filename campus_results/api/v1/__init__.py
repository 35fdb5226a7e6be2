# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    transcripts: Live and final transcripts.
    analytics: Class distribution, retake cohort, campus overview.
    results: Result CRUD, ingestion and workflow.
    grading_scales: Campus grading scales.
    public: Unauthenticated verification by token.
"""

from fastapi import APIRouter

from campus_results.api.v1 import analytics, grading_scales, public, results, transcripts

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Fixed sub-paths of /results come before the /{result_id} routes
router.include_router(transcripts.router, prefix="/results", tags=["Transcripts"])
router.include_router(analytics.router, prefix="/results", tags=["Analytics"])
router.include_router(results.router, prefix="/results", tags=["Results"])
router.include_router(grading_scales.router, prefix="/grading-scales", tags=["Grading Scales"])
router.include_router(public.router, prefix="/public", tags=["Public"])

__all__ = ["router"]
