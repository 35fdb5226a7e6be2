# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the result lifecycle.

Runs ResultService against a SQLite database seeded with the campus
directory from conftest.
"""

import re
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_results.core.errors import (
    AuthorizationError,
    ConflictError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from campus_results.core.policy import Caller
from campus_results.domains.results import ResultService, VerificationService
from campus_results.infrastructure.database.models import Result
from campus_results.models.result import (
    AuditCorrectionRequest,
    LockSemesterRequest,
    ResultCreateRequest,
    ResultFilters,
    ResultResponse,
    ResultUpdateRequest,
)

pytestmark = pytest.mark.integration

REFERENCE = re.compile(r"^RES-\d{4}-\d{5}$")

PayloadFactory = Callable[..., ResultCreateRequest]
Publisher = Callable[..., Awaitable[ResultResponse]]


async def tamper(session_factory: async_sessionmaker[AsyncSession], result_id: str, **values: Any) -> None:
    """Write to a result from another session, as a concurrent client would."""
    async with session_factory() as session:
        await session.execute(update(Result).where(Result.id == result_id).values(**values))
        await session.commit()


class TestDraftCreation:
    """Tests for create_draft."""

    async def test_teacher_creates_draft(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a draft gets a reference and derived fields from the built-in scale."""
        draft = await result_service.create_draft(teacher, make_payload())

        assert draft.status == "DRAFT"
        assert REFERENCE.match(draft.reference)
        assert draft.campus_id == "T1"
        assert draft.normalized_score == 14.0
        assert draft.grade_band == "B"
        assert draft.is_retake_eligible is False
        assert draft.verification_token is None
        assert draft.published_at is None
        assert draft.audit_trail == []
        assert draft.version == 1

    async def test_references_are_strictly_increasing(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test consecutive drafts draw consecutive sequence numbers."""
        first = await result_service.create_draft(teacher, make_payload(evaluation_title="Quiz A"))
        second = await result_service.create_draft(teacher, make_payload(evaluation_title="Quiz B"))

        assert int(second.reference[-5:]) == int(first.reference[-5:]) + 1

    @pytest.mark.parametrize("score,normalized", [(0, 0.0), (20, 20.0)])
    async def test_score_extremes(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
        score: float,
        normalized: float,
    ) -> None:
        """Test zero and full marks are banded."""
        draft = await result_service.create_draft(teacher, make_payload(score=score))

        assert draft.normalized_score == normalized
        assert draft.grade_band is not None

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"score": 21}, "score"),
            ({"score": -1}, "score"),
            ({"max_score": 0.5, "score": 0}, "max_score"),
            ({"student_id": "S9"}, "student_id"),
            ({"class_id": "C9"}, "class_id"),
            ({"subject_id": "BIO"}, "subject_id"),
            ({"teacher_id": "T9"}, "teacher_id"),
            ({"grading_scale_id": "missing"}, "grading_scale_id"),
        ],
    )
    async def test_invalid_payloads(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
        overrides: dict[str, Any],
        field: str,
    ) -> None:
        """Test each invalid input names its field."""
        with pytest.raises(ValidationError) as exc_info:
            await result_service.create_draft(teacher, make_payload(**overrides))

        assert exc_info.value.field == field

    async def test_foreign_campus_is_refused(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a campus caller cannot write into another campus."""
        with pytest.raises(AuthorizationError):
            await result_service.create_draft(teacher, make_payload(campus_id="T2"))

    async def test_admin_must_name_campus(
        self,
        result_service: ResultService,
        admin: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a global caller picks the campus explicitly."""
        with pytest.raises(ValidationError) as exc_info:
            await result_service.create_draft(admin, make_payload())
        assert exc_info.value.field == "campus_id"

        draft = await result_service.create_draft(admin, make_payload(campus_id="T1"))
        assert draft.campus_id == "T1"

    async def test_student_cannot_create(
        self,
        result_service: ResultService,
        student: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test students have no write access."""
        with pytest.raises(AuthorizationError):
            await result_service.create_draft(student, make_payload())

    async def test_duplicate_evaluation(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test the same student cannot get the same evaluation twice."""
        await result_service.create_draft(teacher, make_payload())

        with pytest.raises(ConflictError):
            await result_service.create_draft(teacher, make_payload(evaluation_title="  MID-TERM 1 "))

    async def test_deleted_draft_frees_the_evaluation(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a tombstoned draft does not block a new one."""
        draft = await result_service.create_draft(teacher, make_payload())
        await result_service.soft_delete(teacher, draft.id)

        again = await result_service.create_draft(teacher, make_payload())

        assert again.id != draft.id


class TestRetakes:
    """Tests for retake linkage."""

    async def test_retake_of_published_result(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
        publish_result: Publisher,
    ) -> None:
        """Test a retake may reuse the evaluation title of its original."""
        original = await publish_result(score=7, evaluation_type="final", evaluation_title="Final")
        assert original.is_retake_eligible is True

        retake = await result_service.create_draft(
            teacher,
            make_payload(score=12, evaluation_type="final", evaluation_title="Final", retake_of=original.id),
        )

        assert retake.retake_of == original.id

        with pytest.raises(ConflictError):
            await result_service.create_draft(
                teacher,
                make_payload(score=13, evaluation_type="final", evaluation_title="Final", retake_of=original.id),
            )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"student_id": "S2"},
            {"subject_id": "PHY"},
            {"academic_year": "2025-2026"},
        ],
    )
    async def test_retake_must_match_original(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
        publish_result: Publisher,
        overrides: dict[str, Any],
    ) -> None:
        """Test the original must belong to the same student, subject and year."""
        original = await publish_result(score=7, evaluation_type="final", evaluation_title="Final")

        with pytest.raises(ValidationError) as exc_info:
            await result_service.create_draft(
                teacher,
                make_payload(evaluation_title="Final retake", retake_of=original.id, **overrides),
            )
        assert exc_info.value.field == "retake_of"

    async def test_retake_of_draft_refused(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test only published results can be retaken."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(ValidationError):
            await result_service.create_draft(teacher, make_payload(evaluation_title="Retake", retake_of=draft.id))


class TestDraftEditing:
    """Tests for update_draft and soft_delete."""

    async def test_update_recomputes_derivations(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a score change re-derives band and retake flag."""
        draft = await result_service.create_draft(teacher, make_payload())

        updated = await result_service.update_draft(teacher, draft.id, ResultUpdateRequest(score=8))

        assert updated.normalized_score == 8.0
        assert updated.grade_band == "F"
        assert updated.is_retake_eligible is True
        assert updated.version == draft.version + 1

    async def test_empty_update_is_noop(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test an empty or repeating patch preserves every field."""
        draft = await result_service.create_draft(teacher, make_payload())

        same = await result_service.update_draft(teacher, draft.id, ResultUpdateRequest())
        repeated = await result_service.update_draft(teacher, draft.id, ResultUpdateRequest(score=14))

        assert same == draft
        assert repeated == draft

    async def test_null_required_field(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test required fields cannot be cleared."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(ValidationError) as exc_info:
            await result_service.update_draft(teacher, draft.id, ResultUpdateRequest(score=None))
        assert exc_info.value.field == "score"

    async def test_score_above_max(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a lowered max score must still cover the score."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(ValidationError):
            await result_service.update_draft(teacher, draft.id, ResultUpdateRequest(max_score=10))

    async def test_colleague_cannot_edit(
        self,
        result_service: ResultService,
        teacher: Caller,
        other_teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test teachers only edit records they own."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(AuthorizationError):
            await result_service.update_draft(other_teacher, draft.id, ResultUpdateRequest(score=10))

    async def test_manager_remarks_need_manager(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test class manager remarks are written by managers and signed."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(AuthorizationError):
            await result_service.update_draft(
                teacher, draft.id, ResultUpdateRequest(class_manager_remarks="Keep it up")
            )

        updated = await result_service.update_draft(
            manager, draft.id, ResultUpdateRequest(class_manager_remarks="Keep it up")
        )
        assert updated.class_manager_id == "M1"

    async def test_stale_version(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test a write carrying an outdated version is a retryable conflict."""
        draft = await result_service.create_draft(teacher, make_payload())
        await db.commit()
        await tamper(session_factory, draft.id, version=Result.version + 1)

        with pytest.raises(ConflictError) as exc_info:
            await result_service.update_draft(
                teacher, draft.id, ResultUpdateRequest(score=9, expected_version=draft.version)
            )

        assert exc_info.value.retryable is True

    async def test_submitted_result_is_not_editable(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test edits stop at submission."""
        draft = await result_service.create_draft(teacher, make_payload())
        await result_service.submit(teacher, draft.id)

        with pytest.raises(ConflictError):
            await result_service.update_draft(teacher, draft.id, ResultUpdateRequest(score=9))

    async def test_soft_delete_draft(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a deleted draft reads as not found."""
        draft = await result_service.create_draft(teacher, make_payload())

        await result_service.soft_delete(teacher, draft.id)

        with pytest.raises(NotFoundError):
            await result_service.get_by_id(teacher, draft.id)

    async def test_published_delete_needs_admin_and_reason(
        self,
        result_service: ResultService,
        manager: Caller,
        admin: Caller,
        publish_result: Publisher,
        db: AsyncSession,
    ) -> None:
        """Test only global callers delete past drafts, with an audited reason."""
        published = await publish_result()

        with pytest.raises(ConflictError):
            await result_service.soft_delete(manager, published.id, reason="Entered for the wrong student")
        with pytest.raises(ValidationError):
            await result_service.soft_delete(admin, published.id, reason="oops")

        await result_service.soft_delete(admin, published.id, reason="Entered for the wrong student")

        record = await db.get(Result, published.id)
        assert record.is_deleted is True
        assert record.deleted_by == "A1"
        assert record.audit_trail[-1]["field"] == "is_deleted"
        assert record.audit_trail[-1]["ip"] == "10.0.0.7"


class TestWorkflow:
    """Tests for submit, publish and archive."""

    async def test_teacher_cannot_publish(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test publication is reserved to managers and leaves the record untouched."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(AuthorizationError):
            await result_service.publish(teacher, draft.id)

        assert await result_service.get_by_id(teacher, draft.id) == draft

    async def test_full_path(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test DRAFT to ARCHIVED with one audit entry per transition."""
        draft = await result_service.create_draft(teacher, make_payload())

        submitted = await result_service.submit(teacher, draft.id)
        published = await result_service.publish(manager, draft.id)
        archived = await result_service.archive(manager, draft.id)

        assert submitted.status == "SUBMITTED"
        assert submitted.submitted_by == "Tt"
        assert published.status == "PUBLISHED"
        assert published.published_by == "M1"
        assert len(published.verification_token) >= 22
        assert archived.status == "ARCHIVED"
        assert archived.verification_token == published.verification_token
        assert [e.reason for e in archived.audit_trail] == [
            "Submitted for publication",
            "Published to students",
            "Archived at end of term",
        ]
        assert [(e.old_value, e.new_value) for e in archived.audit_trail] == [
            ("DRAFT", "SUBMITTED"),
            ("SUBMITTED", "PUBLISHED"),
            ("PUBLISHED", "ARCHIVED"),
        ]

    async def test_publish_twice(
        self,
        result_service: ResultService,
        manager: Caller,
        publish_result: Publisher,
    ) -> None:
        """Test a second publication is a conflict and changes nothing."""
        published = await publish_result()
        before = await result_service.get_by_id(manager, published.id)

        with pytest.raises(ConflictError) as exc_info:
            await result_service.publish(manager, published.id)

        assert exc_info.value.retryable is False
        after = await result_service.get_by_id(manager, published.id)
        assert after == before
        assert after.verification_token == published.verification_token

    @pytest.mark.parametrize("operation", ["publish", "archive"])
    async def test_skipping_a_state(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
        operation: str,
    ) -> None:
        """Test a draft cannot jump ahead."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(ConflictError, match="Cannot move result from DRAFT"):
            await getattr(result_service, operation)(manager, draft.id)

    async def test_foreign_manager(
        self,
        result_service: ResultService,
        teacher: Caller,
        foreign_manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a manager of another campus is refused."""
        draft = await result_service.create_draft(teacher, make_payload())
        await result_service.submit(teacher, draft.id)

        with pytest.raises(AuthorizationError):
            await result_service.publish(foreign_manager, draft.id)
        with pytest.raises(AuthorizationError):
            await result_service.get_by_id(foreign_manager, draft.id)

    async def test_missing_result(self, result_service: ResultService, manager: Caller) -> None:
        """Test unknown ids are not found."""
        with pytest.raises(NotFoundError):
            await result_service.publish(manager, "does-not-exist")

    async def test_publish_with_stale_version(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test the expected version is checked on transitions."""
        draft = await result_service.create_draft(teacher, make_payload())
        submitted = await result_service.submit(teacher, draft.id)

        with pytest.raises(ConflictError):
            await result_service.publish(manager, draft.id, expected_version=draft.version)

        published = await result_service.publish(manager, draft.id, expected_version=submitted.version)
        assert published.status == "PUBLISHED"


class TestVerification:
    """Tests for verify_by_token."""

    async def test_published_result_is_authentic(
        self,
        db: AsyncSession,
        publish_result: Publisher,
    ) -> None:
        """Test the public view of a published result."""
        published = await publish_result()

        view = await VerificationService(db).verify_by_token(published.verification_token)

        assert view.is_authentic is True
        assert view.score_on_20 == 14.0
        assert view.grade_band == "B"
        assert view.student.matricule == "MAT-001"
        assert view.subject.code == "MATH"
        assert view.school_class.name == "6e A"
        assert view.model_dump(by_alias=True)["class"] == {"name": "6e A"}

    async def test_misses_are_indistinguishable(
        self,
        db: AsyncSession,
        admin: Caller,
        result_service: ResultService,
        publish_result: Publisher,
    ) -> None:
        """Test unknown and deleted tokens fail the same way."""
        published = await publish_result()
        await result_service.soft_delete(admin, published.id, reason="Duplicate entry removed")
        service = VerificationService(db)

        with pytest.raises(NotFoundError) as deleted:
            await service.verify_by_token(published.verification_token)
        with pytest.raises(NotFoundError) as unknown:
            await service.verify_by_token("no-such-token")

        assert deleted.value.message == unknown.value.message


class TestLockAndCorrection:
    """Tests for lock_semester and audit_correct."""

    async def test_lock_blocks_manager_but_not_admin(
        self,
        result_service: ResultService,
        manager: Caller,
        admin: Caller,
        publish_result: Publisher,
    ) -> None:
        """Test a locked period is only corrected by a global caller."""
        published = await publish_result()

        outcome = await result_service.lock_semester(
            manager, LockSemesterRequest(academic_year="2024-2025", semester="S1")
        )
        assert outcome.locked_count == 1
        assert outcome.transcripts_generated == 1

        correction = AuditCorrectionRequest(score=15, reason="recount requested")
        with pytest.raises(LockedError):
            await result_service.audit_correct(manager, published.id, correction)
        with pytest.raises(LockedError):
            await result_service.archive(manager, published.id)

        corrected = await result_service.audit_correct(admin, published.id, correction)

        assert corrected.normalized_score == 15.0
        assert corrected.score == 15.0
        assert corrected.status == "PUBLISHED"
        assert corrected.verification_token == published.verification_token
        assert len(corrected.audit_trail) == len(published.audit_trail) + 2
        assert corrected.audit_trail[-2].reason == "Semester S1 2024-2025 locked"
        last = corrected.audit_trail[-1]
        assert (last.field, last.old_value, last.new_value, last.by) == ("score", 14.0, 15.0, "A1")

    async def test_relock_is_idempotent(
        self,
        result_service: ResultService,
        manager: Caller,
        publish_result: Publisher,
    ) -> None:
        """Test already-locked records are not counted twice."""
        await publish_result()
        request = LockSemesterRequest(academic_year="2024-2025", semester="S1")

        await result_service.lock_semester(manager, request)
        again = await result_service.lock_semester(manager, request)

        assert again.locked_count == 0

    async def test_lock_ignores_drafts(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test only published and archived records are locked."""
        draft = await result_service.create_draft(teacher, make_payload())

        outcome = await result_service.lock_semester(
            manager, LockSemesterRequest(academic_year="2024-2025", semester="S1")
        )

        assert outcome.locked_count == 0
        assert (await result_service.get_by_id(teacher, draft.id)).period_locked is False

    async def test_teacher_cannot_lock(self, result_service: ResultService, teacher: Caller) -> None:
        """Test locking is a manager action."""
        with pytest.raises(AuthorizationError):
            await result_service.lock_semester(
                teacher, LockSemesterRequest(academic_year="2024-2025", semester="S1")
            )

    async def test_correction_rules(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        admin: Caller,
        make_payload: PayloadFactory,
        publish_result: Publisher,
    ) -> None:
        """Test reason length, global-only access, published-only and real changes."""
        published = await publish_result()
        draft = await result_service.create_draft(teacher, make_payload(evaluation_title="Quiz"))

        with pytest.raises(ValidationError) as exc_info:
            await result_service.audit_correct(admin, published.id, AuditCorrectionRequest(score=15, reason="short"))
        assert exc_info.value.field == "reason"

        reason = "Marking error on question 3"
        with pytest.raises(AuthorizationError):
            await result_service.audit_correct(manager, published.id, AuditCorrectionRequest(score=15, reason=reason))
        with pytest.raises(ConflictError):
            await result_service.audit_correct(admin, draft.id, AuditCorrectionRequest(score=15, reason=reason))
        with pytest.raises(ValidationError):
            await result_service.audit_correct(admin, published.id, AuditCorrectionRequest(score=14, reason=reason))
        with pytest.raises(ValidationError):
            await result_service.audit_correct(admin, published.id, AuditCorrectionRequest(score=25, reason=reason))

    async def test_correction_of_several_fields(
        self,
        result_service: ResultService,
        admin: Caller,
        publish_result: Publisher,
    ) -> None:
        """Test one audit entry per changed field."""
        published = await publish_result()

        corrected = await result_service.audit_correct(
            admin,
            published.id,
            AuditCorrectionRequest(score=9, teacher_remarks="Revised after review", reason="Second marker review"),
        )

        assert {e.field for e in corrected.audit_trail[-2:]} == {"score", "teacher_remarks"}
        assert corrected.grade_band == "F"
        assert corrected.is_retake_eligible is True


class TestListing:
    """Tests for list."""

    async def test_student_sees_own_published_only(
        self,
        result_service: ResultService,
        teacher: Caller,
        student: Caller,
        make_payload: PayloadFactory,
        publish_result: Publisher,
    ) -> None:
        """Test student filters are forced to their own visible results."""
        mine = await publish_result()
        await publish_result(student_id="S2")
        await result_service.create_draft(teacher, make_payload(evaluation_title="Quiz"))

        page = await result_service.list(student, ResultFilters(student_id="S2", status="DRAFT"))
        assert page.total == 0

        page = await result_service.list(student, ResultFilters())
        assert [r.id for r in page.items] == [mine.id]

    async def test_student_cannot_read_drafts(
        self,
        result_service: ResultService,
        teacher: Caller,
        student: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a student's own draft stays hidden."""
        draft = await result_service.create_draft(teacher, make_payload())

        with pytest.raises(AuthorizationError):
            await result_service.get_by_id(student, draft.id)

    async def test_filters_and_pagination(
        self,
        result_service: ResultService,
        teacher: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test filtering by subject and paging through results."""
        for title in ("Quiz 1", "Quiz 2", "Quiz 3"):
            await result_service.create_draft(teacher, make_payload(evaluation_title=title, evaluation_type="quiz"))
        await result_service.create_draft(teacher, make_payload(subject_id="PHY"))

        page = await result_service.list(teacher, ResultFilters(subject_id="M"), page=2, page_size=2)

        assert page.total == 3
        assert len(page.items) == 1
        assert page.page == 2

    async def test_manager_campus_isolation(
        self,
        result_service: ResultService,
        teacher: Caller,
        foreign_manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test another campus sees nothing and cannot ask for T1."""
        await result_service.create_draft(teacher, make_payload())

        assert (await result_service.list(foreign_manager, ResultFilters())).total == 0
        with pytest.raises(AuthorizationError):
            await result_service.list(foreign_manager, ResultFilters(campus_id="T1"))

    @pytest.mark.parametrize("page,page_size", [(0, 20), (1, 0), (1, 201)])
    async def test_pagination_bounds(
        self,
        result_service: ResultService,
        manager: Caller,
        page: int,
        page_size: int,
    ) -> None:
        """Test out-of-range pages are validation errors."""
        with pytest.raises(ValidationError):
            await result_service.list(manager, ResultFilters(), page=page, page_size=page_size)

    async def test_max_page_size(self, result_service: ResultService, manager: Caller) -> None:
        """Test the largest page size is accepted."""
        page = await result_service.list(manager, ResultFilters(), page_size=200)

        assert page.page_size == 200
