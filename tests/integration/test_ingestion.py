# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for bulk ingestion."""

from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.config import Settings
from campus_results.core.errors import AuthorizationError, ValidationError
from campus_results.core.policy import Caller
from campus_results.domains.results import BulkIngestionService
from campus_results.domains.results.ingestion import DUPLICATE_ROW
from campus_results.infrastructure.database.models import Result
from campus_results.models.ingestion import BulkCreateRequest, BulkRow

pytestmark = pytest.mark.integration


def bulk_request(rows: list[dict[str, Any]], **overrides: Any) -> BulkCreateRequest:
    """Mid-term header for class C1 in Mathematics."""
    data: dict[str, Any] = {
        "class_id": "C1",
        "subject_id": "M",
        "teacher_id": "Tt",
        "evaluation_type": "midterm",
        "evaluation_title": "Mid-term 1",
        "academic_year": "2024-2025",
        "semester": "S1",
        "max_score": 20,
        "rows": [BulkRow(**row) for row in rows],
    }
    data.update(overrides)
    return BulkCreateRequest(**data)


@pytest.fixture
def ingestion(db: AsyncSession, settings: Settings) -> BulkIngestionService:
    """Bulk ingestion service on the test database."""
    return BulkIngestionService(db, settings=settings)


class TestBulkCreateDrafts:
    """Tests for bulk_create_drafts."""

    async def test_valid_rows_inserted(
        self,
        ingestion: BulkIngestionService,
        teacher: Caller,
        db: AsyncSession,
    ) -> None:
        """Test every valid row becomes a draft with derived fields."""
        response = await ingestion.bulk_create_drafts(
            teacher,
            bulk_request([
                {"student_id": "S1", "score": 14, "comment": "Solid"},
                {"student_id": "S2", "score": "8.5"},
                {"student_id": "S3", "score": 20, "coefficient": "2"},
            ]),
        )

        assert response.inserted_count == 3
        assert response.skipped_count == 0
        records = (await db.execute(select(Result).where(Result.id.in_(response.result_ids)))).scalars().all()
        by_student = {r.student_id: r for r in records}
        assert by_student["S1"].status == "DRAFT"
        assert by_student["S1"].teacher_remarks == "Solid"
        assert by_student["S1"].grade_band == "B"
        assert by_student["S2"].normalized_score == 8.5
        assert by_student["S2"].is_retake_eligible is True
        assert by_student["S3"].coefficient == 2.0
        refs = sorted(r.reference for r in records)
        assert [int(ref[-5:]) for ref in refs] == list(range(int(refs[0][-5:]), int(refs[0][-5:]) + 3))

    async def test_invalid_rows_reported_by_index(
        self,
        ingestion: BulkIngestionService,
        teacher: Caller,
    ) -> None:
        """Test bad rows are skipped with their original index while good rows go in."""
        response = await ingestion.bulk_create_drafts(
            teacher,
            bulk_request([
                {"student_id": "S1", "score": 14},
                {"student_id": "", "score": 10},
                {"student_id": "S4", "score": 10},
                {"student_id": "S2"},
                {"student_id": "S3", "score": "abc"},
                {"student_id": "S3", "score": 25},
                {"student_id": "S1", "score": 12},
            ]),
        )

        assert response.inserted_count == 1
        assert response.skipped_count == 6
        assert [(e.index, e.error) for e in response.errors] == [
            (1, "studentId is required"),
            (2, "Student is not enrolled in this class"),
            (3, "score is required"),
            (4, "score must be a number"),
            (5, "score must be between 0 and 20.0"),
            (6, "Duplicate row for this student"),
        ]

    async def test_existing_results_are_duplicates(
        self,
        ingestion: BulkIngestionService,
        teacher: Caller,
    ) -> None:
        """Test a second upload of the same evaluation only reports duplicates."""
        rows = [{"student_id": "S1", "score": 14}, {"student_id": "S2", "score": 11}]
        await ingestion.bulk_create_drafts(teacher, bulk_request(rows))

        response = await ingestion.bulk_create_drafts(
            teacher, bulk_request([*rows, {"student_id": "S3", "score": 9}])
        )

        assert response.inserted_count == 1
        assert [(e.index, e.student_id, e.error) for e in response.errors] == [
            (0, "S1", DUPLICATE_ROW),
            (1, "S2", DUPLICATE_ROW),
        ]

    async def test_attendance_column(
        self,
        ingestion: BulkIngestionService,
        teacher: Caller,
        db: AsyncSession,
    ) -> None:
        """Test per-row attendance overrides the default and bad values are rejected."""
        response = await ingestion.bulk_create_drafts(
            teacher,
            bulk_request([
                {"student_id": "S1", "score": 0, "exam_attendance": "Absent"},
                {"student_id": "S2", "score": 0, "exam_attendance": "sick"},
            ]),
        )

        assert response.inserted_count == 1
        assert response.errors[0].index == 1
        record = await db.get(Result, response.result_ids[0])
        assert record.exam_attendance == "absent"

    async def test_empty_rows(self, ingestion: BulkIngestionService, teacher: Caller) -> None:
        """Test an upload without rows is invalid."""
        with pytest.raises(ValidationError) as exc_info:
            await ingestion.bulk_create_drafts(teacher, bulk_request([]))

        assert exc_info.value.field == "rows"

    async def test_foreign_class(self, ingestion: BulkIngestionService, teacher: Caller) -> None:
        """Test the class must belong to the campus."""
        with pytest.raises(ValidationError) as exc_info:
            await ingestion.bulk_create_drafts(
                teacher, bulk_request([{"student_id": "S9", "score": 10}], class_id="C9")
            )

        assert exc_info.value.field == "class_id"

    async def test_student_cannot_ingest(self, ingestion: BulkIngestionService, student: Caller) -> None:
        """Test students have no write access."""
        with pytest.raises(AuthorizationError):
            await ingestion.bulk_create_drafts(student, bulk_request([{"student_id": "S1", "score": 10}]))


class TestCsvIngestion:
    """Tests for bulk_create_from_csv."""

    async def test_csv_upload(self, ingestion: BulkIngestionService, teacher: Caller) -> None:
        """Test a CSV file is mapped to rows and ingested."""
        content = b"student_id,score,comment\nS1,15,Good\nS2,7,\nS5,12,\n"

        response = await ingestion.bulk_create_from_csv(teacher, bulk_request([]), content)

        assert response.inserted_count == 2
        assert [(e.index, e.student_id) for e in response.errors] == [(2, "S5")]

    async def test_csv_without_score_column(self, ingestion: BulkIngestionService, teacher: Caller) -> None:
        """Test a file missing a required column is rejected before ingestion."""
        with pytest.raises(ValidationError) as exc_info:
            await ingestion.bulk_create_from_csv(teacher, bulk_request([]), b"studentId\nS1\n")

        assert exc_info.value.field == "file"
