# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for batch submit and publish."""

from collections.abc import Callable

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_results.core.errors import AuthorizationError, NotFoundError
from campus_results.core.policy import Caller
from campus_results.domains.results import ResultService
from campus_results.infrastructure.database.models import Result
from campus_results.models.result import (
    BatchItem,
    BatchSelector,
    BatchTransitionRequest,
    ResultCreateRequest,
    ResultFilters,
)

pytestmark = pytest.mark.integration

PayloadFactory = Callable[..., ResultCreateRequest]

SELECTOR = BatchSelector(
    class_id="C1",
    subject_id="M",
    evaluation_title="Mid-term 1",
    academic_year="2024-2025",
    semester="S1",
)


async def create_class_evaluation(
    service: ResultService,
    caller: Caller,
    make_payload: PayloadFactory,
    students: tuple[str, ...] = ("S1", "S2", "S3"),
) -> list[str]:
    """One draft per student for the selector's evaluation."""
    ids = []
    for student_id in students:
        draft = await service.create_draft(caller, make_payload(student_id=student_id))
        ids.append(draft.id)
    return ids


class TestSelectorBatches:
    """Tests for batches targeting one evaluation of a class."""

    async def test_submit_then_publish(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test the whole class moves through the workflow."""
        ids = await create_class_evaluation(result_service, teacher, make_payload)

        submitted = await result_service.submit_batch(teacher, BatchTransitionRequest(selector=SELECTOR))
        published = await result_service.publish_batch(manager, BatchTransitionRequest(selector=SELECTOR))

        assert submitted.ok == 3
        assert published.ok == 3
        assert not published.is_partial
        for result_id in ids:
            record = await result_service.get_by_id(manager, result_id)
            assert record.status == "PUBLISHED"
            assert record.verification_token

    async def test_selector_only_matches_source_status(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test publish only picks submitted records."""
        ids = await create_class_evaluation(result_service, teacher, make_payload)
        await result_service.submit(teacher, ids[0])

        outcome = await result_service.publish_batch(manager, BatchTransitionRequest(selector=SELECTOR))

        assert outcome.ok == 1
        assert (await result_service.get_by_id(manager, ids[1])).status == "DRAFT"

    async def test_nothing_to_publish(
        self,
        result_service: ResultService,
        manager: Caller,
    ) -> None:
        """Test an empty selection is not found."""
        with pytest.raises(NotFoundError):
            await result_service.publish_batch(manager, BatchTransitionRequest(selector=SELECTOR))

    async def test_teacher_submits_own_records_only(
        self,
        result_service: ResultService,
        teacher: Caller,
        other_teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test a teacher's selector skips a colleague's records."""
        await create_class_evaluation(result_service, teacher, make_payload, students=("S1", "S2"))
        colleague = await result_service.create_draft(other_teacher, make_payload(student_id="S3", teacher_id="Tu"))

        outcome = await result_service.submit_batch(teacher, BatchTransitionRequest(selector=SELECTOR))

        assert outcome.ok == 2
        assert (await result_service.get_by_id(manager, colleague.id)).status == "DRAFT"

    async def test_teacher_cannot_publish_batch(
        self,
        result_service: ResultService,
        teacher: Caller,
    ) -> None:
        """Test batch publication is reserved to managers."""
        with pytest.raises(AuthorizationError):
            await result_service.publish_batch(teacher, BatchTransitionRequest(selector=SELECTOR))

    async def test_foreign_campus_selector(
        self,
        result_service: ResultService,
        manager: Caller,
    ) -> None:
        """Test a selector naming another campus is refused."""
        selector = SELECTOR.model_copy(update={"campus_id": "T2"})

        with pytest.raises(AuthorizationError):
            await result_service.publish_batch(manager, BatchTransitionRequest(selector=selector))


class TestPartialPublication:
    """Tests for multi-status outcomes."""

    async def test_fifty_records_with_deleted_and_stale(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test 47 publications and 3 failures identified by id and cause."""
        ids = []
        for n in range(50):
            draft = await result_service.create_draft(
                teacher,
                make_payload(evaluation_type="quiz", evaluation_title=f"Quiz {n:02d}"),
            )
            ids.append(draft.id)

        submitted = await result_service.submit_batch(
            teacher,
            BatchTransitionRequest(items=[BatchItem(id=i, version=1) for i in ids]),
        )
        assert submitted.ok == 50

        page = await result_service.list(manager, ResultFilters(status="SUBMITTED"), page_size=200)
        versions = {r.id: r.version for r in page.items}
        assert len(versions) == 50

        deleted = {ids[3], ids[17]}
        stale = ids[41]
        await db.commit()
        async with session_factory() as other:
            await other.execute(update(Result).where(Result.id.in_(sorted(deleted))).values(is_deleted=True))
            await other.execute(update(Result).where(Result.id == stale).values(version=Result.version + 1))
            await other.commit()

        outcome = await result_service.publish_batch(
            manager,
            BatchTransitionRequest(items=[BatchItem(id=i, version=versions[i]) for i in ids]),
        )

        assert outcome.ok == 47
        assert outcome.is_partial
        failures = {f.id: f for f in outcome.failed}
        assert set(failures) == deleted | {stale}
        assert {failures[i].kind for i in deleted} == {"not_found"}
        assert failures[stale].kind == "conflict"
        assert failures[stale].index == 41
        assert all(f.cause for f in outcome.failed)

        remaining = await result_service.list(manager, ResultFilters(status="SUBMITTED"))
        assert [r.id for r in remaining.items] == [stale]

    async def test_failures_do_not_roll_back_successes(
        self,
        result_service: ResultService,
        teacher: Caller,
        manager: Caller,
        make_payload: PayloadFactory,
    ) -> None:
        """Test committed records stay published when a later item fails."""
        ids = await create_class_evaluation(result_service, teacher, make_payload)
        await result_service.submit_batch(teacher, BatchTransitionRequest(selector=SELECTOR))

        outcome = await result_service.publish_batch(
            manager,
            BatchTransitionRequest(items=[BatchItem(id=ids[0]), BatchItem(id="missing"), BatchItem(id=ids[1])]),
        )

        assert outcome.ok == 2
        assert [(f.index, f.kind) for f in outcome.failed] == [(1, "not_found")]
        assert (await result_service.get_by_id(manager, ids[0])).status == "PUBLISHED"
