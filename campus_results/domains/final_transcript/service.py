# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Final transcript service.

This module provides the FinalTranscriptService class for:
- Generating per-student snapshots when a semester is locked
- Ranking students within their class
- Reading and validating snapshots
"""

from __future__ import annotations

import logging
import secrets
from collections import Counter, defaultdict
from typing import Any, Callable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.config import Settings, get_settings
from campus_results.core.errors import AuthorizationError, ConflictError, NotFoundError
from campus_results.core.policy import (
    Action,
    Caller,
    Role,
    Scope,
    ensure_allowed,
    ensure_campus_access,
)
from campus_results.domains.directory.resolver import IdentityResolver, SqlIdentityResolver
from campus_results.domains.grading_scale.derivation import pass_mark_on_20
from campus_results.domains.grading_scale.service import GradingScaleService
from campus_results.domains.transcript.service import build_semester, counts_toward_transcript
from campus_results.infrastructure.database.models.final_transcript import (
    FinalTranscript,
    TranscriptDecision,
    TranscriptStatus,
)
from campus_results.infrastructure.database.models.result import PUBLISHED_STATUSES, Result
from campus_results.models.transcript import (
    FinalSubjectLine,
    FinalTranscriptResponse,
    FinalTranscriptValidateRequest,
)
from campus_results.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def competition_ranks(averages: dict[str, float | None]) -> dict[str, int]:
    """Rank ids by average, best first. Ties share a rank (1, 2, 2, 4).

    Ids without an average are not ranked.
    """
    ranked = sorted(
        ((key, value) for key, value in averages.items() if value is not None),
        key=lambda item: item[1],
        reverse=True,
    )
    ranks: dict[str, int] = {}
    previous: float | None = None
    rank = 0
    for position, (key, value) in enumerate(ranked, start=1):
        if value != previous:
            rank = position
            previous = value
        ranks[key] = rank
    return ranks


def _main_class(records: Sequence[Result]) -> str | None:
    if not records:
        return None
    return Counter(r.class_id for r in records).most_common(1)[0][0]


class FinalTranscriptService:
    """Service for final transcript snapshots.

    Attributes:
        db: Async database session.
        settings: Application settings.
        resolver: Directory lookups for subject coefficients and names.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        resolver: IdentityResolver | None = None,
        clock: Callable[[], Any] = utc_now,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = resolver or SqlIdentityResolver(db)
        self.clock = clock

    async def generate_for_period(
        self,
        caller: Caller,
        campus_id: str,
        academic_year: str,
        semester: str,
    ) -> tuple[int, int]:
        """Write a snapshot for every student with published results in the period.

        DRAFT snapshots are rewritten; validated ones are left untouched. A
        subject passes when its average reaches the pass mark of the
        campus scale, rescaled onto 0-20.

        Returns:
            (snapshots written, students that failed)
        """
        result = await self.db.execute(
            select(Result).where(
                Result.campus_id == campus_id,
                Result.academic_year == academic_year,
                Result.semester == semester,
                Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
                Result.is_deleted.is_(False),
            )
        )
        by_student: dict[str, list[Result]] = defaultdict(list)
        for record in result.scalars().all():
            by_student[record.student_id].append(record)
        if not by_student:
            return 0, 0

        subjects = await self.resolver.subjects({r.subject_id for rs in by_student.values() for r in rs})
        pass_mark = pass_mark_on_20(await GradingScaleService(self.db).resolve(campus_id, None))
        existing_rows = await self.db.execute(
            select(FinalTranscript).where(
                FinalTranscript.campus_id == campus_id,
                FinalTranscript.academic_year == academic_year,
                FinalTranscript.semester == semester,
            )
        )
        existing = {t.student_id: t for t in existing_rows.scalars().all()}

        computed: dict[str, tuple[str | None, list[FinalSubjectLine], float | None, float]] = {}
        errors = 0
        for student_id, records in by_student.items():
            try:
                counting = [r for r in records if counts_toward_transcript(r)]
                view = build_semester(academic_year, semester, counting, subjects)
                lines = [
                    FinalSubjectLine(
                        subject_id=line.subject_id,
                        name=line.name,
                        code=line.code,
                        coefficient=line.coefficient,
                        average=line.average,
                        is_passing=line.average >= pass_mark,
                        evaluation_count=len(line.evaluations),
                    )
                    for line in view.subjects
                ]
                computed[student_id] = (_main_class(records), lines, view.general_average, view.total_coefficient)
            except (ArithmeticError, TypeError, ValueError) as e:
                errors += 1
                logger.error("Final transcript for student %s failed: %s", student_id, str(e))

        ranks_by_class: dict[str | None, dict[str, int]] = {}
        class_sizes: Counter[str | None] = Counter()
        averages_by_class: dict[str | None, dict[str, float | None]] = defaultdict(dict)
        for student_id, (class_id, _, average, _) in computed.items():
            averages_by_class[class_id][student_id] = average
            class_sizes[class_id] += 1
        for class_id, averages in averages_by_class.items():
            ranks_by_class[class_id] = competition_ranks(averages)

        generated = 0
        for student_id, (class_id, lines, average, total) in computed.items():
            snapshot = existing.get(student_id)
            if snapshot is not None and snapshot.status != TranscriptStatus.DRAFT:
                continue
            if snapshot is None:
                snapshot = FinalTranscript(
                    campus_id=campus_id,
                    student_id=student_id,
                    academic_year=academic_year,
                    semester=semester,
                    status=TranscriptStatus.DRAFT.value,
                    decision=TranscriptDecision.PENDING.value,
                    generated_by=caller.user_id,
                )
                self.db.add(snapshot)
            snapshot.class_id = class_id
            snapshot.subjects = [line.model_dump() for line in lines]
            snapshot.general_average = average
            snapshot.total_coefficients = total
            snapshot.class_rank = ranks_by_class[class_id].get(student_id)
            snapshot.class_total = class_sizes[class_id]
            snapshot.generated_by = caller.user_id
            generated += 1

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Final transcripts for %s %s %s could not be stored: %s",
                campus_id,
                academic_year,
                semester,
                str(e),
            )
            return 0, errors + generated

        logger.info(
            "Generated %d final transcripts for campus %s %s %s (%d errors)",
            generated,
            campus_id,
            academic_year,
            semester,
            errors,
        )
        return generated, errors

    async def get_final_transcript(
        self,
        caller: Caller,
        student_id: str,
        academic_year: str,
        semester: str,
    ) -> FinalTranscriptResponse:
        """Read one student's snapshot for a period.

        Raises:
            AuthorizationError: If a student asks for someone else.
            NotFoundError: If no snapshot exists in the caller's reach.
        """
        if caller.role == Role.STUDENT and caller.user_id != student_id:
            raise AuthorizationError()

        query = select(FinalTranscript).where(
            FinalTranscript.student_id == student_id,
            FinalTranscript.academic_year == academic_year,
            FinalTranscript.semester == semester,
        )
        if not caller.is_global:
            query = query.where(FinalTranscript.campus_id == caller.campus_id)

        snapshot = (await self.db.execute(query)).scalars().first()
        if snapshot is None:
            raise NotFoundError("Final transcript not found")
        return FinalTranscriptResponse.model_validate(snapshot)

    async def validate(
        self,
        caller: Caller,
        transcript_id: str,
        request: FinalTranscriptValidateRequest,
    ) -> FinalTranscriptResponse:
        """DRAFT -> VALIDATED, recording the decision and a verification token.

        Raises:
            NotFoundError: If the snapshot does not exist.
            AuthorizationError: If the caller is not a manager of its campus.
            ConflictError: If it was already validated.
        """
        snapshot = await self.db.get(FinalTranscript, transcript_id)
        if snapshot is None:
            raise NotFoundError("Final transcript not found")
        ensure_campus_access(caller, snapshot.campus_id)
        ensure_allowed(caller, Action.VALIDATE_TRANSCRIPT, Scope(campus_id=snapshot.campus_id))
        if snapshot.status != TranscriptStatus.DRAFT:
            raise ConflictError("Final transcript is already validated")

        snapshot.status = TranscriptStatus.VALIDATED.value
        if request.decision is not None:
            snapshot.decision = request.decision.value
        if request.general_appreciation is not None:
            snapshot.general_appreciation = request.general_appreciation
        snapshot.validated_by = caller.user_id
        snapshot.validated_at = self.clock()
        snapshot.verification_token = secrets.token_urlsafe(self.settings.workflow.token_bytes)

        await self.db.commit()
        logger.info("Validated final transcript %s by %s", snapshot.id, caller.user_id)
        return FinalTranscriptResponse.model_validate(snapshot)
