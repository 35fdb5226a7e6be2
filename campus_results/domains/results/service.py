# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Result workflow service.

This module provides the ResultService class for:
- Draft creation, editing and soft deletion
- The DRAFT -> SUBMITTED -> PUBLISHED -> ARCHIVED workflow, one record or a batch
- Semester locking and audit corrections of published results
- Reading and listing results

Every mutation follows the same gate order: the record must exist, the
caller must see its campus, a period lock must be bypassable, the policy
must allow the action, and only then is the workflow state checked.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
from enum import Enum
from typing import Any, Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from campus_results.core.config import Settings, get_settings
from campus_results.core.errors import (
    AuthorizationError,
    BatchFailure,
    BatchOutcome,
    ConflictError,
    LockedError,
    NotFoundError,
    ResultEngineError,
    TransientError,
    ValidationError,
)
from campus_results.core.policy import (
    Action,
    Caller,
    Role,
    Scope,
    authorize,
    effective_campus,
    ensure_allowed,
    ensure_campus_access,
)
from campus_results.domains.directory.resolver import IdentityResolver, SqlIdentityResolver
from campus_results.domains.final_transcript.service import FinalTranscriptService
from campus_results.domains.grading_scale.bands import ScaleSpec
from campus_results.domains.grading_scale.derivation import derive
from campus_results.domains.grading_scale.service import GradingScaleService
from campus_results.domains.results.reference import ReferenceGenerator
from campus_results.infrastructure.background import BackgroundTaskRegistry, get_task_registry
from campus_results.infrastructure.database.models.result import (
    PUBLISHED_STATUSES,
    Result,
    ResultStatus,
)
from campus_results.infrastructure.events import EventBus, EventTypes, get_event_bus
from campus_results.models.result import (
    MAX_PAGE_SIZE,
    AuditCorrectionRequest,
    BatchTransitionRequest,
    LockSemesterRequest,
    LockSemesterResponse,
    ResultCreateRequest,
    ResultFilters,
    ResultListResponse,
    ResultResponse,
    ResultUpdateRequest,
)
from campus_results.utils.datetime import utc_now

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10

# Fields a draft edit may not set to null
_REQUIRED_FIELDS = frozenset({
    "score",
    "max_score",
    "coefficient",
    "evaluation_type",
    "evaluation_title",
    "exam_attendance",
})

# Draft fields whose change invalidates the derived grade
_GRADING_INPUTS = frozenset({"score", "max_score", "evaluation_type", "grading_scale_id"})


def evaluation_key(
    student_id: str,
    subject_id: str,
    academic_year: str,
    semester: str,
    evaluation_title: str,
    retake_of: str | None,
) -> str:
    """Fingerprint of 'one student, one evaluation, one retake chain'.

    Backs the partial unique index over live results.
    """
    raw = "\x1f".join(
        [student_id, subject_id, academic_year, semester, evaluation_title.strip().lower(), retake_of or "-"]
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def check_score(score: float, max_score: float) -> None:
    """Enforce 0 <= score <= max_score and max_score >= 1.

    Raises:
        ValidationError: Naming the offending field.
    """
    if max_score < 1:
        raise ValidationError("maxScore must be at least 1", field="max_score", expected=">= 1")
    if not 0 <= score <= max_score:
        raise ValidationError(
            f"score must be between 0 and {max_score}",
            field="score",
            expected=f"0 <= score <= {max_score}",
        )


def require_reason(reason: str | None) -> str:
    """Audit reasons must be human-readable sentences."""
    if reason is None or len(reason.strip()) < MIN_REASON_LENGTH:
        raise ValidationError(
            f"A reason of at least {MIN_REASON_LENGTH} characters is required",
            field="reason",
            expected=f"text of length >= {MIN_REASON_LENGTH}",
        )
    return reason.strip()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ResultService:
    """Service driving results through their lifecycle.

    Attributes:
        db: Async database session.
        settings: Application settings.
        resolver: Directory lookups for campus membership.
        scales: Grading scale service used for resolution.
        references: Result reference generator.
        events: Event bus receiving post-commit events.
        tasks: Registry running post-commit work in the background.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        resolver: IdentityResolver | None = None,
        events: EventBus | None = None,
        tasks: BackgroundTaskRegistry | None = None,
        clock: Callable[[], Any] = utc_now,
    ) -> None:
        """Initialize result service.

        Args:
            db: Async database session.
            settings: Application settings (defaults to get_settings()).
            resolver: Identity resolver (defaults to the SQL directory).
            events: Event bus (defaults to the process-wide bus).
            tasks: Background task registry (defaults to the process-wide one).
            clock: Source of timezone-aware timestamps.
        """
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = resolver or SqlIdentityResolver(db)
        self.scales = GradingScaleService(db)
        self.references = ReferenceGenerator(db, self.settings.workflow.reference_prefix)
        self.events = events or get_event_bus()
        self.tasks = tasks or get_task_registry()
        self.clock = clock

    # =========================================================================
    # Creation and draft editing
    # =========================================================================

    async def create_draft(
        self,
        caller: Caller,
        request: ResultCreateRequest,
    ) -> ResultResponse:
        """Create a result in DRAFT.

        Args:
            caller: Authenticated caller.
            request: Result payload.

        Returns:
            The persisted draft with its reference and derived fields.

        Raises:
            AuthorizationError: If the caller may not create in the campus.
            ValidationError: If the payload or its references are invalid.
            ConflictError: If the student already has this evaluation.
            TransientError: If the reference counter or the insert fails.
        """
        campus = self._require_campus(caller, request.campus_id)
        ensure_allowed(caller, Action.CREATE, Scope(campus_id=campus))

        check_score(request.score, request.max_score)
        await self._check_membership(
            campus,
            student_id=request.student_id,
            class_id=request.class_id,
            subject_id=request.subject_id,
            teacher_id=request.teacher_id,
        )
        if request.retake_of:
            await self._check_retake_link(campus, request)
        if request.grading_scale_id:
            await self.scales.ensure_usable(campus, request.grading_scale_id)

        scale = await self.scales.resolve(campus, request.grading_scale_id)
        derivation = derive(request.score, request.max_score, request.evaluation_type.value, scale)

        key = evaluation_key(
            request.student_id,
            request.subject_id,
            request.academic_year,
            request.semester.value,
            request.evaluation_title,
            request.retake_of,
        )
        await self._ensure_key_free(key)

        reference = await self.references.next_result_ref(self.clock().year)

        record = Result(
            reference=reference,
            campus_id=campus,
            academic_year=request.academic_year,
            semester=request.semester.value,
            student_id=request.student_id,
            class_id=request.class_id,
            subject_id=request.subject_id,
            teacher_id=request.teacher_id,
            evaluation_type=request.evaluation_type.value,
            evaluation_title=request.evaluation_title,
            evaluation_key=key,
            score=request.score,
            max_score=request.max_score,
            coefficient=request.coefficient,
            grading_scale_id=request.grading_scale_id,
            normalized_score=derivation.normalized_score,
            grade_band=derivation.grade_band,
            is_retake_eligible=derivation.is_retake_eligible,
            is_passing=derivation.is_passing,
            status=ResultStatus.DRAFT.value,
            audit_trail=[],
            period_locked=False,
            is_deleted=False,
            retake_of=request.retake_of,
            teacher_remarks=request.teacher_remarks,
            strengths=request.strengths,
            improvements=request.improvements,
            exam_date=request.exam_date,
            exam_period=_plain(request.exam_period),
            exam_attendance=request.exam_attendance.value,
        )
        self.db.add(record)
        await self._commit(retry_safe=False)
        await self.db.refresh(record)

        logger.info(
            "Created draft result %s (%s) for student %s by %s",
            record.reference,
            record.id,
            record.student_id,
            caller.user_id,
        )
        return ResultResponse.model_validate(record)

    async def update_draft(
        self,
        caller: Caller,
        result_id: str,
        request: ResultUpdateRequest,
    ) -> ResultResponse:
        """Edit a draft. Derived fields are recomputed when a grading input changes.

        An empty patch, or one repeating the stored values, writes nothing.

        Raises:
            NotFoundError: If the result does not exist.
            AuthorizationError: If the caller may not edit it.
            ConflictError: If the result left DRAFT or the version is stale.
            ValidationError: If the patch is invalid.
        """
        record = await self._load(result_id)
        self._guard(caller, record, Action.UPDATE)
        if record.status != ResultStatus.DRAFT:
            raise ConflictError("Only draft results can be edited")
        self._check_version(record, request.expected_version)

        changes = {field: _plain(value) for field, value in request.changes().items()}
        for field, value in changes.items():
            if value is None and field in _REQUIRED_FIELDS:
                raise ValidationError(f"{field} cannot be null", field=field, expected="a value")

        if "class_manager_remarks" in changes and not caller.is_manager:
            raise AuthorizationError()

        check_score(changes.get("score", record.score), changes.get("max_score", record.max_score))
        if changes.get("grading_scale_id"):
            await self.scales.ensure_usable(record.campus_id, changes["grading_scale_id"])

        changed = {field for field, value in changes.items() if getattr(record, field) != value}
        if not changed:
            return ResultResponse.model_validate(record)

        for field in changed:
            setattr(record, field, changes[field])
        if "class_manager_remarks" in changed:
            record.class_manager_id = caller.user_id

        if changed & _GRADING_INPUTS:
            scale = await self.scales.resolve(record.campus_id, record.grading_scale_id)
            self._apply_derivation(record, scale)

        if "evaluation_title" in changed:
            key = evaluation_key(
                record.student_id,
                record.subject_id,
                record.academic_year,
                record.semester,
                record.evaluation_title,
                record.retake_of,
            )
            if key != record.evaluation_key:
                await self._ensure_key_free(key)
                record.evaluation_key = key

        await self._commit(retry_safe=True)
        logger.info("Updated draft %s fields=%s by %s", record.reference, sorted(changed), caller.user_id)
        return ResultResponse.model_validate(record)

    async def soft_delete(
        self,
        caller: Caller,
        result_id: str,
        reason: str | None = None,
    ) -> None:
        """Tombstone a result.

        Drafts can be deleted by their owner or a manager. Any other status
        requires a globally privileged caller and an audit reason.
        """
        record = await self._load(result_id)
        self._guard(caller, record, Action.DELETE)

        if record.status != ResultStatus.DRAFT:
            if not authorize(caller, Action.FORCE_DELETE, self._scope(record)):
                raise ConflictError("Only draft results can be deleted")
            self._audit(record, caller, "is_deleted", False, True, require_reason(reason))

        record.is_deleted = True
        record.deleted_at = self.clock()
        record.deleted_by = caller.user_id
        await self._commit(retry_safe=True)

        logger.info("Soft-deleted result %s (%s) by %s", record.reference, record.status, caller.user_id)

    # =========================================================================
    # Workflow transitions
    # =========================================================================

    async def submit(
        self,
        caller: Caller,
        result_id: str,
        expected_version: int | None = None,
    ) -> ResultResponse:
        """DRAFT -> SUBMITTED."""
        record = await self._load(result_id)
        self._guard(caller, record, Action.SUBMIT)
        self._require_status(record, ResultStatus.DRAFT, ResultStatus.SUBMITTED)
        self._check_version(record, expected_version)

        now = self.clock()
        record.status = ResultStatus.SUBMITTED.value
        record.submitted_at = now
        record.submitted_by = caller.user_id
        self._audit(record, caller, "status", ResultStatus.DRAFT.value, record.status, "Submitted for publication")

        await self._commit(retry_safe=True)
        logger.info("Submitted result %s by %s", record.reference, caller.user_id)
        return ResultResponse.model_validate(record)

    async def publish(
        self,
        caller: Caller,
        result_id: str,
        expected_version: int | None = None,
    ) -> ResultResponse:
        """SUBMITTED -> PUBLISHED.

        Assigns the verification token on first publication, re-runs the
        grade derivations against the currently resolved scale, commits,
        then schedules the dropout-risk recomputation without waiting.

        Raises:
            ConflictError: If the result is not SUBMITTED (publishing twice
                included) or the version is stale.
        """
        record = await self._load(result_id)
        self._guard(caller, record, Action.PUBLISH)
        self._require_status(record, ResultStatus.SUBMITTED, ResultStatus.PUBLISHED)
        self._check_version(record, expected_version)

        now = self.clock()
        record.status = ResultStatus.PUBLISHED.value
        record.published_at = now
        record.published_by = caller.user_id
        if record.verification_token is None:
            record.verification_token = secrets.token_urlsafe(self.settings.workflow.token_bytes)

        scale = await self.scales.resolve(record.campus_id, record.grading_scale_id)
        self._apply_derivation(record, scale)
        self._audit(record, caller, "status", ResultStatus.SUBMITTED.value, record.status, "Published to students")

        await self._commit(retry_safe=True)
        logger.info("Published result %s by %s", record.reference, caller.user_id)

        self._emit(EventTypes.Result.PUBLISHED, record)
        return ResultResponse.model_validate(record)

    async def archive(
        self,
        caller: Caller,
        result_id: str,
        expected_version: int | None = None,
    ) -> ResultResponse:
        """PUBLISHED -> ARCHIVED."""
        record = await self._load(result_id)
        self._guard(caller, record, Action.ARCHIVE)
        self._require_status(record, ResultStatus.PUBLISHED, ResultStatus.ARCHIVED)
        self._check_version(record, expected_version)

        record.status = ResultStatus.ARCHIVED.value
        record.archived_at = self.clock()
        record.archived_by = caller.user_id
        self._audit(record, caller, "status", ResultStatus.PUBLISHED.value, record.status, "Archived at end of term")

        await self._commit(retry_safe=True)
        logger.info("Archived result %s by %s", record.reference, caller.user_id)
        return ResultResponse.model_validate(record)

    async def submit_batch(self, caller: Caller, request: BatchTransitionRequest) -> BatchOutcome:
        """Submit every targeted draft, one commit per record."""
        return await self._run_batch(caller, request, Action.SUBMIT, ResultStatus.DRAFT, self.submit)

    async def publish_batch(self, caller: Caller, request: BatchTransitionRequest) -> BatchOutcome:
        """Publish every targeted submitted result, one commit per record.

        Each record goes through the single-record publish contract, so a
        failure only affects that record. A deadline stops the loop early
        and the outcome reports how many records were already committed.
        """
        return await self._run_batch(caller, request, Action.PUBLISH, ResultStatus.SUBMITTED, self.publish)

    async def lock_semester(
        self,
        caller: Caller,
        request: LockSemesterRequest,
    ) -> LockSemesterResponse:
        """Freeze every published result of a period and snapshot final transcripts.

        Records already locked are left alone. Transcript generation runs
        after the lock has committed; per-student failures are counted.
        """
        campus = self._require_campus(caller, request.campus_id)
        ensure_allowed(caller, Action.LOCK, Scope(campus_id=campus))
        semester = request.semester.value

        result = await self.db.execute(
            select(Result).where(
                Result.campus_id == campus,
                Result.academic_year == request.academic_year,
                Result.semester == semester,
                Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
                Result.is_deleted.is_(False),
                Result.period_locked.is_(False),
            )
        )
        records = result.scalars().all()
        reason = f"Semester {semester} {request.academic_year} locked"
        for record in records:
            record.period_locked = True
            self._audit(record, caller, "period_locked", False, True, reason)

        await self._commit(retry_safe=True)
        logger.info(
            "Locked %d results for campus %s %s %s by %s",
            len(records),
            campus,
            request.academic_year,
            semester,
            caller.user_id,
        )

        transcripts = FinalTranscriptService(self.db, self.settings, self.resolver)
        generated, errors = await transcripts.generate_for_period(
            caller,
            campus,
            request.academic_year,
            semester,
        )
        return LockSemesterResponse(
            locked_count=len(records),
            transcripts_generated=generated,
            transcript_errors=errors,
        )

    async def audit_correct(
        self,
        caller: Caller,
        result_id: str,
        request: AuditCorrectionRequest,
    ) -> ResultResponse:
        """Correct a published or archived result, leaving one audit entry per changed field.

        The status and the verification token never change.

        Raises:
            ValidationError: If the reason is too short or nothing changes.
            LockedError: If the period is locked and the caller cannot bypass it.
            AuthorizationError: If the caller is not globally privileged.
            ConflictError: If the result is not published or archived.
        """
        reason = require_reason(request.reason)
        record = await self._load(result_id)
        self._guard(caller, record, Action.AUDIT_CORRECT)
        if record.status not in PUBLISHED_STATUSES:
            raise ConflictError("Only published or archived results can be corrected")
        self._check_version(record, request.expected_version)

        changes = request.model_dump(exclude_unset=True, exclude={"reason", "expected_version"})
        if changes.get("score", 0) is None:
            raise ValidationError("score cannot be null", field="score", expected="a value")
        if "score" in changes:
            check_score(changes["score"], record.max_score)

        changed = {field: value for field, value in changes.items() if getattr(record, field) != value}
        if not changed:
            raise ValidationError(
                "The correction does not change the result",
                field="score",
                expected="a value different from the current one",
            )

        for field, value in changed.items():
            self._audit(record, caller, field, getattr(record, field), value, reason)
            setattr(record, field, value)

        if "score" in changed:
            scale = await self.scales.resolve(record.campus_id, record.grading_scale_id)
            self._apply_derivation(record, scale)

        await self._commit(retry_safe=True)
        logger.info(
            "Audit-corrected result %s fields=%s by %s",
            record.reference,
            sorted(changed),
            caller.user_id,
        )
        if "score" in changed:
            self._emit(EventTypes.Result.CORRECTED, record)
        return ResultResponse.model_validate(record)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_by_id(self, caller: Caller, result_id: str) -> ResultResponse:
        """Read one result the caller may see."""
        record = await self._load(result_id)
        ensure_allowed(caller, Action.READ, self._scope(record))
        return ResultResponse.model_validate(record)

    async def list(
        self,
        caller: Caller,
        filters: ResultFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> ResultListResponse:
        """List results visible to the caller.

        A student only ever sees their own published or archived results,
        whatever the filters say.

        Raises:
            ValidationError: If page < 1 or page_size is outside [1, 200].
        """
        if page < 1:
            raise ValidationError("page must be at least 1", field="page", expected=">= 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}",
                field="page_size",
                expected=f"1 <= page_size <= {MAX_PAGE_SIZE}",
            )

        campus = effective_campus(caller, filters.campus_id)
        is_student = caller.role == Role.STUDENT
        ensure_allowed(
            caller,
            Action.READ,
            Scope(campus_id=campus, student_id=caller.user_id if is_student else None),
        )

        conditions = [Result.is_deleted.is_(False)]
        if campus is not None:
            conditions.append(Result.campus_id == campus)
        for field in ("class_id", "subject_id", "teacher_id", "student_id", "academic_year"):
            value = getattr(filters, field)
            if value is not None:
                conditions.append(getattr(Result, field) == value)
        if filters.status is not None:
            conditions.append(Result.status == filters.status.value)
        if filters.evaluation_type is not None:
            conditions.append(Result.evaluation_type == filters.evaluation_type.value)
        if filters.semester is not None:
            conditions.append(Result.semester == filters.semester.value)
        if is_student:
            conditions.append(Result.student_id == caller.user_id)
            conditions.append(Result.status.in_([s.value for s in PUBLISHED_STATUSES]))

        total = (await self.db.execute(select(func.count(Result.id)).where(*conditions))).scalar_one()
        result = await self.db.execute(
            select(Result)
            .where(*conditions)
            .order_by(Result.created_at.desc(), Result.reference.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return ResultListResponse(
            items=[ResultResponse.model_validate(r) for r in result.scalars().all()],
            total=total,
            page=page,
            page_size=page_size,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load(self, result_id: str) -> Result:
        """Load a live result, always reading the stored row."""
        try:
            record = await self.db.get(Result, result_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise TransientError("Result store unavailable", retry_safe=True, original_error=e) from e
        if record is None or record.is_deleted:
            raise NotFoundError("Result not found", {"id": result_id})
        return record

    @staticmethod
    def _scope(record: Result) -> Scope:
        return Scope(
            campus_id=record.campus_id,
            teacher_id=record.teacher_id,
            student_id=record.student_id,
            status=record.status,
        )

    def _guard(self, caller: Caller, record: Result, action: Action) -> None:
        """Campus scope, then period lock, then the action policy."""
        ensure_campus_access(caller, record.campus_id)
        scope = self._scope(record)
        if record.period_locked and not authorize(caller, Action.BYPASS_LOCK, scope):
            raise LockedError("Result is locked for this period", {"id": record.id})
        ensure_allowed(caller, action, scope)

    @staticmethod
    def _require_status(record: Result, expected: ResultStatus, target: ResultStatus) -> None:
        if record.status != expected:
            raise ConflictError(
                f"Cannot move result from {record.status} to {target.value}",
                details={"id": record.id, "status": record.status},
            )

    @staticmethod
    def _check_version(record: Result, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != record.version:
            raise ConflictError(
                "Result was modified since it was read",
                retryable=True,
                details={"id": record.id, "version": record.version},
            )

    def _require_campus(self, caller: Caller, requested: str | None) -> str:
        campus = effective_campus(caller, requested)
        if campus is None:
            raise ValidationError("campus_id is required", field="campus_id", expected="campus id")
        return campus

    async def _check_membership(
        self,
        campus_id: str,
        student_id: str,
        class_id: str,
        subject_id: str,
        teacher_id: str,
    ) -> None:
        checks = (
            ("student_id", self.resolver.student_belongs_to_campus, student_id),
            ("class_id", self.resolver.class_belongs_to_campus, class_id),
            ("subject_id", self.resolver.subject_belongs_to_campus, subject_id),
            ("teacher_id", self.resolver.teacher_belongs_to_campus, teacher_id),
        )
        for field, belongs, entity_id in checks:
            if not await belongs(entity_id, campus_id):
                raise ValidationError(
                    f"{field} does not belong to campus {campus_id}",
                    field=field,
                    expected="an id of the same campus",
                )

    async def _check_retake_link(self, campus_id: str, request: ResultCreateRequest) -> None:
        original = await self.db.get(Result, request.retake_of)
        valid = (
            original is not None
            and not original.is_deleted
            and original.campus_id == campus_id
            and original.student_id == request.student_id
            and original.subject_id == request.subject_id
            and original.academic_year == request.academic_year
            and original.status in PUBLISHED_STATUSES
        )
        if not valid:
            raise ValidationError(
                "retake_of must reference a published result of the same student, subject and year",
                field="retake_of",
                expected="id of a PUBLISHED or ARCHIVED result",
            )

    async def _ensure_key_free(self, key: str) -> None:
        result = await self.db.execute(
            select(Result.id).where(Result.evaluation_key == key, Result.is_deleted.is_(False))
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError(
                "A result already exists for this student and evaluation",
                retryable=True,
            )

    @staticmethod
    def _apply_derivation(record: Result, scale: ScaleSpec) -> None:
        """Assign derived fields, touching only the ones that differ."""
        derivation = derive(record.score, record.max_score, record.evaluation_type, scale)
        if record.normalized_score != derivation.normalized_score:
            record.normalized_score = derivation.normalized_score
        if record.grade_band != derivation.grade_band:
            record.grade_band = derivation.grade_band
        if record.is_retake_eligible != derivation.is_retake_eligible:
            record.is_retake_eligible = derivation.is_retake_eligible
        if record.is_passing != derivation.is_passing:
            record.is_passing = derivation.is_passing

    def _audit(
        self,
        record: Result,
        caller: Caller,
        field: str,
        old_value: Any,
        new_value: Any,
        reason: str,
    ) -> None:
        record.append_audit({
            "field": field,
            "old_value": old_value,
            "new_value": new_value,
            "reason": reason,
            "by": caller.user_id,
            "at": self.clock().isoformat(),
            "ip": caller.ip,
        })

    async def _commit(self, retry_safe: bool) -> None:
        """Commit the unit of work, translating storage failures."""
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            raise ConflictError("Result was modified concurrently", retryable=True) from e
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Write conflicts with an existing result", retryable=True) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Result commit failed: %s", str(e))
            raise TransientError("Result store unavailable", retry_safe=retry_safe, original_error=e) from e

    def _emit(self, event_type: str, record: Result) -> None:
        """Hand a post-commit event to the bus without waiting for subscribers."""
        payload = {
            "result_id": record.id,
            "reference": record.reference,
            "student_id": record.student_id,
            "class_id": record.class_id,
            "academic_year": record.academic_year,
            "semester": record.semester,
        }
        self.tasks.spawn(
            self.events.publish(event_type, payload, campus_id=record.campus_id),
            name=f"{event_type}-{record.id}",
        )

    async def _batch_targets(
        self,
        caller: Caller,
        request: BatchTransitionRequest,
        from_status: ResultStatus,
    ) -> list[tuple[str, int | None]]:
        if request.items is not None:
            return [(item.id, item.version) for item in request.items]

        selector = request.selector
        campus = self._require_campus(caller, selector.campus_id)
        query = select(Result.id, Result.version).where(
            Result.campus_id == campus,
            Result.class_id == selector.class_id,
            Result.subject_id == selector.subject_id,
            Result.evaluation_title == selector.evaluation_title,
            Result.academic_year == selector.academic_year,
            Result.semester == selector.semester.value,
            Result.status == from_status.value,
            Result.is_deleted.is_(False),
        )
        if caller.role == Role.TEACHER:
            query = query.where(Result.teacher_id == caller.user_id)
        result = await self.db.execute(query.order_by(Result.reference))
        return [(row.id, row.version) for row in result.all()]

    async def _run_batch(
        self,
        caller: Caller,
        request: BatchTransitionRequest,
        action: Action,
        from_status: ResultStatus,
        operation: Callable[..., Awaitable[ResultResponse]],
    ) -> BatchOutcome:
        campus = effective_campus(caller, request.selector.campus_id if request.selector else None)
        if not caller.is_global:
            ensure_allowed(caller, action, Scope(campus_id=campus, teacher_id=caller.user_id))

        targets = await self._batch_targets(caller, request, from_status)
        if not targets:
            raise NotFoundError("No results match the batch")

        outcome = BatchOutcome()
        deadline = request.deadline_seconds or self.settings.workflow.batch_deadline_seconds

        try:
            async with asyncio.timeout(deadline):
                for index, (result_id, version) in enumerate(targets):
                    try:
                        await operation(caller, result_id, expected_version=version)
                        outcome.ok += 1
                    except ResultEngineError as e:
                        if self.db.in_transaction():
                            await self.db.rollback()
                        outcome.failed.append(BatchFailure.from_error(index, e, id=result_id))
        except TimeoutError:
            await self.db.rollback()
            outcome.interrupted = True
            outcome.skipped = len(targets) - outcome.ok - len(outcome.failed)
            logger.warning(
                "Batch %s interrupted by deadline: %d committed, %d not attempted",
                action.value,
                outcome.ok,
                outcome.skipped,
            )
        except asyncio.CancelledError:
            logger.warning("Batch %s cancelled after %d committed records", action.value, outcome.ok)
            raise

        logger.info(
            "Batch %s by %s: %d ok, %d failed",
            action.value,
            caller.user_id,
            outcome.ok,
            len(outcome.failed),
        )
        return outcome
