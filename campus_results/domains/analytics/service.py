# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics service module.

This module provides read-only aggregations over results:
- Class distribution: statistics of one evaluation across a class
- Retake cohort: retake-eligible published results grouped by student
- Campus overview: facet counts plus published-result figures

Usage:
    from campus_results.domains.analytics import AnalyticsService

    service = AnalyticsService(db)
    distribution = await service.get_class_distribution(
        caller,
        class_id="C1",
        subject_id="MATH",
        evaluation_title="Midterm 1",
        academic_year="2024-2025",
        semester="S1",
    )
"""

import logging
import statistics
from collections import Counter, defaultdict
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.config import Settings, get_settings
from campus_results.core.errors import NotFoundError
from campus_results.core.policy import Action, Caller, Scope, effective_campus, ensure_allowed
from campus_results.domains.directory.resolver import IdentityResolver, SqlIdentityResolver
from campus_results.domains.grading_scale.derivation import round_half_up
from campus_results.infrastructure.database.models.result import (
    PUBLISHED_STATUSES,
    ExamAttendance,
    Result,
)
from campus_results.models.analytics import (
    CampusOverviewResponse,
    ClassDistributionResponse,
    PublishedStats,
    Quartiles,
    RetakeListResponse,
    RetakeStudent,
    RetakeSubject,
)

logger = logging.getLogger(__name__)

UNBANDED = "unbanded"


def quartiles(values: Sequence[float]) -> tuple[float, float, float]:
    """Inclusive quartiles; a single value is its own quartiles."""
    if len(values) == 1:
        return values[0], values[0], values[0]
    q1, q2, q3 = statistics.quantiles(values, n=4, method="inclusive")
    return q1, q2, q3


class AnalyticsService:
    """Service for class and campus analytics.

    Attributes:
        db: Async database session.
        settings: Application settings.
        resolver: Directory lookups for display names.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        resolver: IdentityResolver | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = resolver or SqlIdentityResolver(db)

    async def get_class_distribution(
        self,
        caller: Caller,
        class_id: str,
        subject_id: str,
        evaluation_title: str,
        academic_year: str,
        semester: str,
    ) -> ClassDistributionResponse:
        """Statistics of normalized scores for one evaluation of a class.

        Every non-deleted status counts, so a teacher can review a class
        before submitting it.

        Raises:
            AuthorizationError: If the caller may not view class analytics.
            NotFoundError: If the evaluation has no results.
        """
        campus = effective_campus(caller, None)
        ensure_allowed(caller, Action.VIEW_CLASS_ANALYTICS, Scope(campus_id=campus))

        query = select(Result.normalized_score, Result.grade_band).where(
            Result.class_id == class_id,
            Result.subject_id == subject_id,
            Result.evaluation_title == evaluation_title,
            Result.academic_year == academic_year,
            Result.semester == semester,
            Result.is_deleted.is_(False),
        )
        if campus is not None:
            query = query.where(Result.campus_id == campus)
        rows = (await self.db.execute(query)).all()
        if not rows:
            raise NotFoundError("No results for this evaluation")

        scores = sorted(row.normalized_score for row in rows)
        q1, q2, q3 = quartiles(scores)
        band_counts = Counter(row.grade_band or UNBANDED for row in rows)

        return ClassDistributionResponse(
            class_id=class_id,
            subject_id=subject_id,
            evaluation_title=evaluation_title,
            academic_year=academic_year,
            semester=semester,
            count=len(scores),
            mean=round_half_up(statistics.fmean(scores), 2),
            median=round_half_up(statistics.median(scores), 2),
            stddev=round_half_up(statistics.pstdev(scores), 2),
            min=scores[0],
            max=scores[-1],
            quartiles=Quartiles(
                q1=round_half_up(q1, 2),
                q2=round_half_up(q2, 2),
                q3=round_half_up(q3, 2),
            ),
            band_counts=dict(sorted(band_counts.items())),
        )

    async def get_retake_list(
        self,
        caller: Caller,
        class_id: str,
        academic_year: str,
        semester: str,
        subject_id: str | None = None,
    ) -> RetakeListResponse:
        """Students with retake-eligible published results, with the failing subjects."""
        campus = effective_campus(caller, None)
        ensure_allowed(caller, Action.VIEW_CLASS_ANALYTICS, Scope(campus_id=campus))

        query = select(Result).where(
            Result.class_id == class_id,
            Result.academic_year == academic_year,
            Result.semester == semester,
            Result.is_retake_eligible.is_(True),
            Result.retake_of.is_(None),
            Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
            Result.is_deleted.is_(False),
        )
        if campus is not None:
            query = query.where(Result.campus_id == campus)
        if subject_id is not None:
            query = query.where(Result.subject_id == subject_id)
        records = (await self.db.execute(query.order_by(Result.reference))).scalars().all()

        by_student: dict[str, list[Result]] = defaultdict(list)
        for record in records:
            by_student[record.student_id].append(record)
        students = await self.resolver.students(by_student)
        subjects = await self.resolver.subjects({r.subject_id for r in records})

        entries = []
        for student_id, student_records in by_student.items():
            info = students.get(student_id)
            entries.append(
                RetakeStudent(
                    student_id=student_id,
                    first_name=info.first_name if info else None,
                    last_name=info.last_name if info else None,
                    matricule=info.matricule if info else None,
                    subjects=[
                        RetakeSubject(
                            result_id=r.id,
                            subject_id=r.subject_id,
                            subject_name=subjects[r.subject_id].name if r.subject_id in subjects else None,
                            evaluation_title=r.evaluation_title,
                            evaluation_type=r.evaluation_type,
                            normalized_score=r.normalized_score,
                            grade_band=r.grade_band,
                        )
                        for r in student_records
                    ],
                )
            )
        entries.sort(key=lambda e: (e.last_name or "", e.first_name or "", e.student_id))

        return RetakeListResponse(
            class_id=class_id,
            academic_year=academic_year,
            semester=semester,
            total_students=len(entries),
            students=entries,
        )

    async def get_campus_overview(
        self,
        caller: Caller,
        campus_id: str | None = None,
        academic_year: str | None = None,
        semester: str | None = None,
    ) -> CampusOverviewResponse:
        """Facet counts over live results plus figures over published ones.

        Global callers without a campus get every campus.
        """
        campus = effective_campus(caller, campus_id)
        ensure_allowed(caller, Action.VIEW_CAMPUS_ANALYTICS, Scope(campus_id=campus))

        conditions = [Result.is_deleted.is_(False)]
        if campus is not None:
            conditions.append(Result.campus_id == campus)
        if academic_year is not None:
            conditions.append(Result.academic_year == academic_year)
        if semester is not None:
            conditions.append(Result.semester == semester)

        by_status = await self._facet(Result.status, conditions)
        by_type = await self._facet(Result.evaluation_type, conditions)
        by_period = await self._facet(Result.exam_period, conditions)

        published = [*conditions, Result.status.in_([s.value for s in PUBLISHED_STATUSES])]
        at_risk_threshold = self.settings.risk.at_risk_threshold
        row = (
            await self.db.execute(
                select(
                    func.count(Result.id).label("total"),
                    func.avg(Result.normalized_score).label("avg_normalized"),
                    func.count(Result.id).filter(Result.is_passing.is_(True)).label("passing"),
                    func.count(Result.id).filter(Result.is_retake_eligible.is_(True)).label("retake"),
                    func.count(Result.id).filter(Result.dropout_risk_score >= at_risk_threshold).label("at_risk"),
                    func.count(Result.id)
                    .filter(Result.exam_attendance == ExamAttendance.ABSENT.value)
                    .label("absent"),
                ).where(*published)
            )
        ).one()

        total = row.total or 0
        stats = PublishedStats(
            total_published=total,
            avg_normalized=round_half_up(row.avg_normalized, 2) if total else None,
            passing_count=row.passing or 0,
            passing_rate=round_half_up((row.passing or 0) / total * 100, 1) if total else None,
            retake_eligible_count=row.retake or 0,
            at_risk_count=row.at_risk or 0,
            absent_count=row.absent or 0,
        )
        logger.debug("Campus overview for %s: %d published", campus or "all campuses", total)

        return CampusOverviewResponse(
            campus_id=campus,
            academic_year=academic_year,
            semester=semester,
            by_status=by_status,
            by_evaluation_type=by_type,
            by_exam_period=by_period,
            published=stats,
        )

    async def _facet(self, column, conditions) -> dict[str, int]:
        result = await self.db.execute(
            select(column, func.count(Result.id)).where(*conditions).group_by(column)
        )
        return {str(value) if value is not None else "unspecified": count for value, count in result.all()}
