# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Result analytics API endpoints.

- GET /analytics/class-distribution - Statistics of one class evaluation
- GET /analytics/retake-list - Students with retake-eligible results
- GET /analytics/campus-overview - Campus facet counts and published figures
"""

from fastapi import APIRouter, Query

from campus_results.api.dependencies import CurrentCaller, DbSession
from campus_results.domains.analytics import AnalyticsService
from campus_results.infrastructure.database.models.result import Semester
from campus_results.models.analytics import (
    CampusOverviewResponse,
    ClassDistributionResponse,
    RetakeListResponse,
)
from campus_results.models.result import ACADEMIC_YEAR_PATTERN

router = APIRouter()


@router.get(
    "/analytics/class-distribution",
    response_model=ClassDistributionResponse,
    summary="Class distribution of an evaluation",
)
async def class_distribution(
    caller: CurrentCaller,
    db: DbSession,
    class_id: str = Query(...),
    subject_id: str = Query(...),
    evaluation_title: str = Query(...),
    academic_year: str = Query(..., pattern=ACADEMIC_YEAR_PATTERN),
    semester: Semester = Query(...),
) -> ClassDistributionResponse:
    """Mean, median, spread, quartiles and band counts."""
    service = AnalyticsService(db=db)
    return await service.get_class_distribution(
        caller,
        class_id=class_id,
        subject_id=subject_id,
        evaluation_title=evaluation_title,
        academic_year=academic_year,
        semester=semester.value,
    )


@router.get(
    "/analytics/retake-list",
    response_model=RetakeListResponse,
    summary="Retake cohort of a class",
)
async def retake_list(
    caller: CurrentCaller,
    db: DbSession,
    class_id: str = Query(...),
    academic_year: str = Query(..., pattern=ACADEMIC_YEAR_PATTERN),
    semester: Semester = Query(...),
    subject_id: str | None = Query(None),
) -> RetakeListResponse:
    """Students whose published results are retake-eligible."""
    service = AnalyticsService(db=db)
    return await service.get_retake_list(
        caller,
        class_id=class_id,
        academic_year=academic_year,
        semester=semester.value,
        subject_id=subject_id,
    )


@router.get(
    "/analytics/campus-overview",
    response_model=CampusOverviewResponse,
    summary="Campus overview",
)
async def campus_overview(
    caller: CurrentCaller,
    db: DbSession,
    campus_id: str | None = Query(None, description="Global callers only; omitted means every campus"),
    academic_year: str | None = Query(None, pattern=ACADEMIC_YEAR_PATTERN),
    semester: Semester | None = Query(None),
) -> CampusOverviewResponse:
    """Counts by status, evaluation type and exam period, plus published figures."""
    service = AnalyticsService(db=db)
    return await service.get_campus_overview(
        caller,
        campus_id=campus_id,
        academic_year=academic_year,
        semester=semester.value if semester else None,
    )
