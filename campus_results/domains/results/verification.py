# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Public verification of published results.

Anyone holding a verification token can confirm a result is authentic.
Every miss looks the same: unknown token, unpublished, deleted.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.errors import NotFoundError
from campus_results.domains.directory.resolver import IdentityResolver, SqlIdentityResolver
from campus_results.domains.grading_scale.derivation import round_half_up
from campus_results.domains.transcript.service import score_on_20
from campus_results.infrastructure.database.models.result import PUBLISHED_STATUSES, Result
from campus_results.models.transcript import (
    VerificationClass,
    VerificationResponse,
    VerificationStudent,
    VerificationSubject,
)

logger = logging.getLogger(__name__)


class VerificationService:
    """Resolves verification tokens to a minimal public view.

    Attributes:
        db: Async database session.
        resolver: Directory lookups for display names.
    """

    def __init__(self, db: AsyncSession, resolver: IdentityResolver | None = None) -> None:
        self.db = db
        self.resolver = resolver or SqlIdentityResolver(db)

    async def verify_by_token(self, token: str) -> VerificationResponse:
        """Look up a published or archived result by its token.

        Raises:
            NotFoundError: For any token that does not identify a live
                published result.
        """
        result = await self.db.execute(
            select(Result).where(
                Result.verification_token == token,
                Result.is_deleted.is_(False),
                Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.info("Verification miss")
            raise NotFoundError("Result not found")

        student = (await self.resolver.students([record.student_id])).get(record.student_id)
        subject = (await self.resolver.subjects([record.subject_id])).get(record.subject_id)
        class_name = await self.resolver.class_name(record.class_id)

        return VerificationResponse(
            is_authentic=True,
            reference=record.reference,
            student=VerificationStudent(
                first_name=student.first_name if student else None,
                last_name=student.last_name if student else None,
                matricule=student.matricule if student else None,
            ),
            subject=VerificationSubject(
                name=subject.name if subject else None,
                code=subject.code if subject else None,
            ),
            school_class=VerificationClass(name=class_name),
            academic_year=record.academic_year,
            semester=record.semester,
            evaluation_type=record.evaluation_type,
            evaluation_title=record.evaluation_title,
            score_on_20=round_half_up(score_on_20(record), 2),
            grade_band=record.grade_band,
            published_at=record.published_at,
        )
