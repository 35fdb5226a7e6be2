# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Weighted transcripts.

A transcript groups a student's published and archived results by
(academic year, semester), averages each subject on the 0-20 axis and
weights the subject averages by coefficient. Retakes and excused
evaluations do not count.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.errors import AuthorizationError
from campus_results.core.policy import Caller, Role
from campus_results.domains.directory.resolver import (
    IdentityResolver,
    SqlIdentityResolver,
    SubjectInfo,
)
from campus_results.domains.grading_scale.derivation import CANONICAL_MAX, round_half_up
from campus_results.infrastructure.database.models.result import (
    PUBLISHED_STATUSES,
    ExamAttendance,
    Result,
)
from campus_results.models.transcript import (
    TranscriptEvaluation,
    TranscriptResponse,
    TranscriptSemester,
    TranscriptSubject,
)

logger = logging.getLogger(__name__)


def counts_toward_transcript(record: Result) -> bool:
    """Whether a record contributes to averages."""
    return (
        not record.is_deleted
        and record.status in PUBLISHED_STATUSES
        and record.retake_of is None
        and record.exam_attendance != ExamAttendance.EXCUSED
    )


def score_on_20(record: Result) -> float:
    """Unrounded score on the canonical axis."""
    return record.score / record.max_score * CANONICAL_MAX


def weighted_average(lines: Iterable[tuple[float, float]]) -> tuple[float | None, float]:
    """Coefficient-weighted mean of (average, coefficient) pairs.

    Returns:
        (average rounded to 2 decimals or None when the weights sum to 0,
        total coefficient)
    """
    total = 0.0
    weighted = 0.0
    for average, coefficient in lines:
        total += coefficient
        weighted += average * coefficient
    if total <= 0:
        return None, total
    return round_half_up(weighted / total, 2), total


def build_semester(
    academic_year: str,
    semester: str,
    records: Sequence[Result],
    subjects: dict[str, SubjectInfo],
) -> TranscriptSemester:
    """Build one period of a transcript from its contributing records."""
    by_subject: dict[str, list[Result]] = defaultdict(list)
    for record in sorted(records, key=lambda r: r.reference):
        by_subject[record.subject_id].append(record)

    lines = []
    for subject_id, subject_records in by_subject.items():
        info = subjects.get(subject_id)
        coefficient = (
            info.coefficient
            if info is not None and info.coefficient is not None
            else subject_records[0].coefficient
        )
        raw_average = sum(score_on_20(r) for r in subject_records) / len(subject_records)
        lines.append(
            TranscriptSubject(
                subject_id=subject_id,
                name=info.name if info else None,
                code=info.code if info else None,
                coefficient=coefficient,
                average=round_half_up(raw_average, 2),
                evaluations=[
                    TranscriptEvaluation(
                        result_id=r.id,
                        reference=r.reference,
                        evaluation_type=r.evaluation_type,
                        evaluation_title=r.evaluation_title,
                        score=r.score,
                        max_score=r.max_score,
                        score_on_20=round_half_up(score_on_20(r), 2),
                        grade_band=r.grade_band,
                    )
                    for r in subject_records
                ],
            )
        )

    lines.sort(key=lambda line: (line.name or line.subject_id))
    general_average, total = weighted_average((line.average, line.coefficient) for line in lines)
    return TranscriptSemester(
        academic_year=academic_year,
        semester=semester,
        subjects=lines,
        total_coefficient=total,
        general_average=general_average,
    )


def build_semesters(
    records: Iterable[Result],
    subjects: dict[str, SubjectInfo],
) -> list[TranscriptSemester]:
    """Group records into periods, newest year first, then by period name.

    Period names sort as text, so "Annual" comes before "S1" and "S2".
    """
    periods: dict[tuple[str, str], list[Result]] = defaultdict(list)
    for record in records:
        if counts_toward_transcript(record):
            periods[(record.academic_year, record.semester)].append(record)

    ordered = sorted(periods, key=lambda p: p[1])
    ordered.sort(key=lambda p: p[0], reverse=True)
    return [build_semester(year, semester, periods[(year, semester)], subjects) for year, semester in ordered]


class TranscriptService:
    """Reads weighted transcripts.

    Attributes:
        db: Async database session.
        resolver: Directory lookups for subject coefficients and names.
    """

    def __init__(self, db: AsyncSession, resolver: IdentityResolver | None = None) -> None:
        self.db = db
        self.resolver = resolver or SqlIdentityResolver(db)

    async def get_transcript(
        self,
        caller: Caller,
        student_id: str,
        academic_year: str | None = None,
    ) -> TranscriptResponse:
        """Build the transcript of one student.

        Students read their own transcript only. Campus staff read the
        records of their campus; global callers read everything.

        Raises:
            AuthorizationError: If a student asks for someone else.
        """
        if caller.role == Role.STUDENT and caller.user_id != student_id:
            raise AuthorizationError()

        query = select(Result).where(
            Result.student_id == student_id,
            Result.is_deleted.is_(False),
            Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
        )
        if not caller.is_global:
            query = query.where(Result.campus_id == caller.campus_id)
        if academic_year is not None:
            query = query.where(Result.academic_year == academic_year)

        records = (await self.db.execute(query)).scalars().all()
        subjects = await self.resolver.subjects({r.subject_id for r in records})

        semesters = build_semesters(records, subjects)
        logger.debug("Transcript for %s: %d periods from %d records", student_id, len(semesters), len(records))
        return TranscriptResponse(student_id=student_id, semesters=semesters)
