# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for bulk result ingestion."""

from pydantic import BaseModel, Field

from campus_results.infrastructure.database.models.result import (
    EvaluationType,
    ExamAttendance,
    ExamPeriod,
    Semester,
)
from campus_results.models.result import ACADEMIC_YEAR_PATTERN


class BulkRow(BaseModel):
    """One student's score within a bulk upload.

    Values are kept loose here so a bad row is reported with its index
    instead of rejecting the whole upload.
    """

    student_id: str | None = None
    score: float | str | None = None
    comment: str | None = Field(default=None, description="Stored as teacher remarks")
    coefficient: float | str | None = None
    exam_attendance: str | None = None


class BulkCreateRequest(BaseModel):
    """Evaluation header shared by every row, plus the rows."""

    campus_id: str | None = None
    class_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    teacher_id: str = Field(min_length=1, max_length=64)
    evaluation_type: EvaluationType
    evaluation_title: str = Field(min_length=1, max_length=100)
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester
    max_score: float = 20.0
    coefficient: float = Field(default=1.0, ge=0)
    grading_scale_id: str | None = None
    exam_period: ExamPeriod | None = None
    default_attendance: ExamAttendance = ExamAttendance.PRESENT
    rows: list[BulkRow]


class BulkRowError(BaseModel):
    """A row that was not inserted."""

    index: int
    student_id: str | None
    error: str


class BulkCreateResponse(BaseModel):
    """Outcome of a bulk insert."""

    inserted_count: int
    skipped_count: int
    errors: list[BulkRowError]
    result_ids: list[str] = Field(default_factory=list)
