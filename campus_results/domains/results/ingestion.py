# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk ingestion of draft results.

A teacher enters one evaluation for a whole class: a shared header
(class, subject, evaluation, period, max score) and one row per student.
Rows are validated one by one; bad rows are reported with their index
while the good ones are inserted together.

The CSV adapter only maps columns to rows and delegates.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.config import Settings, get_settings
from campus_results.core.errors import TransientError, ValidationError
from campus_results.core.policy import Action, Caller, Scope, effective_campus, ensure_allowed
from campus_results.domains.directory.resolver import IdentityResolver, SqlIdentityResolver
from campus_results.domains.grading_scale.bands import ScaleSpec
from campus_results.domains.grading_scale.derivation import derive
from campus_results.domains.grading_scale.service import GradingScaleService
from campus_results.domains.results.reference import ReferenceGenerator
from campus_results.domains.results.service import check_score, evaluation_key
from campus_results.infrastructure.database.models.result import (
    ExamAttendance,
    Result,
    ResultStatus,
)
from campus_results.models.ingestion import (
    BulkCreateRequest,
    BulkCreateResponse,
    BulkRow,
    BulkRowError,
)
from campus_results.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Normalized header (lowercase, no underscores) -> BulkRow field
CSV_COLUMNS = {
    "studentid": "student_id",
    "score": "score",
    "comment": "comment",
    "teacherremarks": "comment",
    "coefficient": "coefficient",
    "examattendance": "exam_attendance",
}

DUPLICATE_ROW = "Result already exists for this student and evaluation"


def _normalize_header(header: str) -> str:
    return header.strip().lower().replace("_", "")


def parse_results_csv(content: bytes | str) -> list[BulkRow]:
    """Parse an uploaded CSV into bulk rows.

    Accepts UTF-8 with or without a BOM. Blank lines are skipped.

    Raises:
        ValidationError: If the file is not UTF-8, is empty, has no data
            rows, or lacks the student or score column.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError("CSV must be UTF-8 encoded", field="file", expected="UTF-8 text") from e
    else:
        text = content.lstrip("\ufeff")

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ValidationError("CSV file is empty", field="file", expected="a header row and data rows")

    columns: dict[str, str] = {}
    for header in reader.fieldnames:
        target = CSV_COLUMNS.get(_normalize_header(header or ""))
        if target is not None and target not in columns:
            columns[target] = header

    for required, label in (("student_id", "studentId"), ("score", "score")):
        if required not in columns:
            raise ValidationError(
                f"CSV is missing the {label} column",
                field="file",
                expected=f"a '{label}' header",
            )

    rows = []
    for record in reader:
        values = {
            field: (record.get(header) or "").strip() or None
            for field, header in columns.items()
        }
        if not any(values.values()):
            continue
        rows.append(BulkRow(**values))

    if not rows:
        raise ValidationError("CSV file has no data rows", field="file", expected="at least one row")
    return rows


def _parse_number(value: float | str | None, label: str) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", field=label) from None
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a number", field=label)
    return number


@dataclass
class _PreparedRow:
    index: int
    student_id: str
    score: float
    coefficient: float
    exam_attendance: str
    comment: str | None
    key: str


class BulkIngestionService:
    """Inserts one evaluation's drafts for a whole class.

    Attributes:
        db: Async database session.
        settings: Application settings.
        resolver: Directory lookups for campus membership and enrollment.
        scales: Grading scale service.
        references: Result reference generator.
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
        self.scales = GradingScaleService(db)
        self.references = ReferenceGenerator(db, self.settings.workflow.reference_prefix)

    async def bulk_create_drafts(
        self,
        caller: Caller,
        request: BulkCreateRequest,
    ) -> BulkCreateResponse:
        """Validate every row and insert the valid ones as drafts.

        Args:
            caller: Authenticated caller.
            request: Evaluation header and rows.

        Returns:
            Counts, the ids of inserted records and one error per skipped
            row, in row order.

        Raises:
            ValidationError: If the header is invalid or there are no rows.
            AuthorizationError: If the caller may not create in the campus.
        """
        campus = effective_campus(caller, request.campus_id)
        if campus is None:
            raise ValidationError("campus_id is required", field="campus_id", expected="campus id")
        ensure_allowed(caller, Action.CREATE, Scope(campus_id=campus))

        if not request.rows:
            raise ValidationError("rows must not be empty", field="rows", expected="at least one row")
        if request.max_score < 1:
            raise ValidationError("maxScore must be at least 1", field="max_score", expected=">= 1")

        await self._check_header(campus, request)
        if request.grading_scale_id:
            await self.scales.ensure_usable(campus, request.grading_scale_id)
        scale = await self.scales.resolve(campus, request.grading_scale_id)
        enrolled = await self.resolver.class_enrolled_students(request.class_id)

        errors: list[BulkRowError] = []
        prepared: list[_PreparedRow] = []
        seen: set[str] = set()
        for index, row in enumerate(request.rows):
            try:
                candidate = self._prepare_row(index, row, request, enrolled)
            except ValidationError as e:
                errors.append(BulkRowError(index=index, student_id=row.student_id, error=e.message))
                continue
            if candidate.key in seen:
                errors.append(BulkRowError(index=index, student_id=row.student_id, error="Duplicate row for this student"))
                continue
            seen.add(candidate.key)
            prepared.append(candidate)

        existing = await self._existing_keys([p.key for p in prepared])
        fresh = []
        for candidate in prepared:
            if candidate.key in existing:
                errors.append(BulkRowError(index=candidate.index, student_id=candidate.student_id, error=DUPLICATE_ROW))
            else:
                fresh.append(candidate)

        result_ids: list[str] = []
        if fresh:
            result_ids = await self._insert(campus, request, scale, fresh, errors)

        errors.sort(key=lambda e: e.index)
        logger.info(
            "Bulk ingestion for class %s '%s' by %s: %d inserted, %d skipped",
            request.class_id,
            request.evaluation_title,
            caller.user_id,
            len(result_ids),
            len(errors),
        )
        return BulkCreateResponse(
            inserted_count=len(result_ids),
            skipped_count=len(errors),
            errors=errors,
            result_ids=result_ids,
        )

    async def bulk_create_from_csv(
        self,
        caller: Caller,
        header: BulkCreateRequest,
        content: bytes | str,
    ) -> BulkCreateResponse:
        """Parse a CSV upload and ingest its rows under the given header."""
        rows = parse_results_csv(content)
        return await self.bulk_create_drafts(caller, header.model_copy(update={"rows": rows}))

    async def _check_header(self, campus_id: str, request: BulkCreateRequest) -> None:
        checks = (
            ("class_id", self.resolver.class_belongs_to_campus, request.class_id),
            ("subject_id", self.resolver.subject_belongs_to_campus, request.subject_id),
            ("teacher_id", self.resolver.teacher_belongs_to_campus, request.teacher_id),
        )
        for field, belongs, entity_id in checks:
            if not await belongs(entity_id, campus_id):
                raise ValidationError(
                    f"{field} does not belong to campus {campus_id}",
                    field=field,
                    expected="an id of the same campus",
                )

    def _prepare_row(
        self,
        index: int,
        row: BulkRow,
        request: BulkCreateRequest,
        enrolled: set[str],
    ) -> _PreparedRow:
        student_id = (row.student_id or "").strip()
        if not student_id:
            raise ValidationError("studentId is required", field="student_id")
        if student_id not in enrolled:
            raise ValidationError("Student is not enrolled in this class", field="student_id")

        score = _parse_number(row.score, "score")
        if score is None:
            raise ValidationError("score is required", field="score")
        check_score(score, request.max_score)

        coefficient = _parse_number(row.coefficient, "coefficient")
        if coefficient is None:
            coefficient = request.coefficient
        elif coefficient < 0:
            raise ValidationError("coefficient must be >= 0", field="coefficient")

        attendance = request.default_attendance.value
        if row.exam_attendance:
            try:
                attendance = ExamAttendance(row.exam_attendance.strip().lower()).value
            except ValueError:
                raise ValidationError(
                    "examAttendance must be one of present, absent, excused",
                    field="exam_attendance",
                ) from None

        return _PreparedRow(
            index=index,
            student_id=student_id,
            score=score,
            coefficient=coefficient,
            exam_attendance=attendance,
            comment=row.comment,
            key=evaluation_key(
                student_id,
                request.subject_id,
                request.academic_year,
                request.semester.value,
                request.evaluation_title,
                None,
            ),
        )

    async def _existing_keys(self, keys: list[str]) -> set[str]:
        if not keys:
            return set()
        result = await self.db.execute(
            select(Result.evaluation_key).where(
                Result.evaluation_key.in_(keys),
                Result.is_deleted.is_(False),
            )
        )
        return set(result.scalars().all())

    def _build(
        self,
        campus_id: str,
        request: BulkCreateRequest,
        scale: ScaleSpec,
        row: _PreparedRow,
        reference: str,
    ) -> Result:
        derivation = derive(row.score, request.max_score, request.evaluation_type.value, scale)
        return Result(
            reference=reference,
            campus_id=campus_id,
            academic_year=request.academic_year,
            semester=request.semester.value,
            student_id=row.student_id,
            class_id=request.class_id,
            subject_id=request.subject_id,
            teacher_id=request.teacher_id,
            evaluation_type=request.evaluation_type.value,
            evaluation_title=request.evaluation_title,
            evaluation_key=row.key,
            score=row.score,
            max_score=request.max_score,
            coefficient=row.coefficient,
            grading_scale_id=request.grading_scale_id,
            normalized_score=derivation.normalized_score,
            grade_band=derivation.grade_band,
            is_retake_eligible=derivation.is_retake_eligible,
            is_passing=derivation.is_passing,
            status=ResultStatus.DRAFT.value,
            audit_trail=[],
            period_locked=False,
            is_deleted=False,
            teacher_remarks=row.comment,
            exam_period=request.exam_period.value if request.exam_period else None,
            exam_attendance=row.exam_attendance,
        )

    async def _insert(
        self,
        campus_id: str,
        request: BulkCreateRequest,
        scale: ScaleSpec,
        rows: list[_PreparedRow],
        errors: list[BulkRowError],
    ) -> list[str]:
        """Insert in one transaction; on a unique collision fall back to one row per transaction.

        Raises:
            TransientError: If the store fails for any reason other than a
                unique collision. Rows committed before the failure stay.
        """
        year = utc_now().year
        references = await self.references.next_result_refs(year, len(rows))
        records = [self._build(campus_id, request, scale, row, ref) for row, ref in zip(rows, references)]
        self.db.add_all(records)
        try:
            await self.db.commit()
            return [record.id for record in records]
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Bulk insert collided with concurrent writes, retrying row by row")
        except SQLAlchemyError as e:
            await self._fail(e)

        inserted = []
        for row in rows:
            reference = await self.references.next_result_ref(year)
            record = self._build(campus_id, request, scale, row, reference)
            self.db.add(record)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                errors.append(BulkRowError(index=row.index, student_id=row.student_id, error=DUPLICATE_ROW))
                continue
            except SQLAlchemyError as e:
                await self._fail(e)
            inserted.append(record.id)
        return inserted

    async def _fail(self, error: Exception) -> None:
        await self.db.rollback()
        logger.error("Bulk insert failed: %s", str(error))
        raise TransientError(
            "Result store unavailable",
            retry_safe=False,
            original_error=error,
        ) from error
