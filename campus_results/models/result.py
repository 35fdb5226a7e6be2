# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for result operations.

Shape checks (types, enums, academic year pattern, text lengths) live
here. Rules that need other fields or the database (score within
max score, campus membership, retake linkage) are enforced by the
services so they surface as engine ValidationErrors.
"""

from datetime import date, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from campus_results.infrastructure.database.models.result import (
    EvaluationType,
    ExamAttendance,
    ExamPeriod,
    ResultStatus,
    Semester,
)

ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"
MAX_PAGE_SIZE = 200


class ResultCreateRequest(BaseModel):
    """Payload for creating a draft result."""

    campus_id: str | None = Field(
        default=None,
        max_length=64,
        description="Target campus; required for global callers, implied otherwise",
    )
    student_id: str = Field(min_length=1, max_length=64)
    class_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    teacher_id: str = Field(min_length=1, max_length=64)
    evaluation_type: EvaluationType
    evaluation_title: str = Field(min_length=1, max_length=100)
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN, examples=["2024-2025"])
    semester: Semester
    score: float
    max_score: float = 20.0
    coefficient: float = Field(default=1.0, ge=0)
    grading_scale_id: str | None = None
    retake_of: str | None = Field(default=None, description="Published result this retake supersedes")
    teacher_remarks: str | None = Field(default=None, max_length=1000)
    strengths: str | None = Field(default=None, max_length=500)
    improvements: str | None = Field(default=None, max_length=500)
    exam_date: date | None = None
    exam_period: ExamPeriod | None = None
    exam_attendance: ExamAttendance = ExamAttendance.PRESENT


class ResultUpdateRequest(BaseModel):
    """Patch for a draft result. Unset fields are left untouched."""

    score: float | None = None
    max_score: float | None = None
    coefficient: float | None = Field(default=None, ge=0)
    evaluation_type: EvaluationType | None = None
    evaluation_title: str | None = Field(default=None, min_length=1, max_length=100)
    grading_scale_id: str | None = None
    teacher_remarks: str | None = Field(default=None, max_length=1000)
    class_manager_remarks: str | None = Field(default=None, max_length=1000)
    strengths: str | None = Field(default=None, max_length=500)
    improvements: str | None = Field(default=None, max_length=500)
    exam_date: date | None = None
    exam_period: ExamPeriod | None = None
    exam_attendance: ExamAttendance | None = None
    expected_version: int | None = Field(default=None, description="Version the caller read")

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields, without the concurrency token."""
        return self.model_dump(exclude_unset=True, exclude={"expected_version"})


class TransitionRequest(BaseModel):
    """Optional body of single-record workflow calls."""

    expected_version: int | None = None


class AuditCorrectionRequest(BaseModel):
    """Correction of a published or archived result."""

    score: float | None = None
    teacher_remarks: str | None = Field(default=None, max_length=1000)
    reason: str = Field(description="Why the correction is made (at least 10 characters)")
    expected_version: int | None = None


class BatchSelector(BaseModel):
    """Identifies one evaluation across a class."""

    campus_id: str | None = None
    class_id: str = Field(min_length=1, max_length=64)
    subject_id: str = Field(min_length=1, max_length=64)
    evaluation_title: str = Field(min_length=1, max_length=100)
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester


class BatchItem(BaseModel):
    """One record of an explicit batch, with the version the caller read."""

    id: str
    version: int | None = None


class BatchTransitionRequest(BaseModel):
    """Batch submit/publish: either a selector or an explicit item list."""

    selector: BatchSelector | None = None
    items: list[BatchItem] | None = None
    deadline_seconds: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def exactly_one_target(self) -> Self:
        if (self.selector is None) == (self.items is None):
            raise ValueError("Provide either 'selector' or 'items'")
        return self


class LockSemesterRequest(BaseModel):
    """Lock every published result of one period."""

    campus_id: str | None = None
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester


class ResultFilters(BaseModel):
    """Filters accepted by the list operation."""

    campus_id: str | None = None
    class_id: str | None = None
    subject_id: str | None = None
    teacher_id: str | None = None
    student_id: str | None = None
    status: ResultStatus | None = None
    evaluation_type: EvaluationType | None = None
    academic_year: str | None = Field(default=None, pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester | None = None


class AuditEntry(BaseModel):
    """One audit-trail entry."""

    field: str
    old_value: Any = None
    new_value: Any = None
    reason: str
    by: str
    at: str
    ip: str | None = None


class ResultResponse(BaseModel):
    """Full view of a result record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    campus_id: str
    academic_year: str
    semester: str
    student_id: str
    class_id: str
    subject_id: str
    teacher_id: str
    evaluation_type: str
    evaluation_title: str
    score: float
    max_score: float
    coefficient: float
    grading_scale_id: str | None
    normalized_score: float
    grade_band: str | None
    is_retake_eligible: bool
    is_passing: bool
    status: str
    submitted_at: datetime | None
    submitted_by: str | None
    published_at: datetime | None
    published_by: str | None
    archived_at: datetime | None
    archived_by: str | None
    verification_token: str | None
    audit_trail: list[AuditEntry]
    period_locked: bool
    retake_of: str | None
    dropout_risk_score: float | None
    teacher_remarks: str | None
    class_manager_remarks: str | None
    class_manager_id: str | None
    strengths: str | None
    improvements: str | None
    exam_date: date | None
    exam_period: str | None
    exam_attendance: str
    version: int
    created_at: datetime
    updated_at: datetime


class ResultListResponse(BaseModel):
    """One page of results."""

    items: list[ResultResponse]
    total: int
    page: int
    page_size: int


class BatchFailureResponse(BaseModel):
    """Per-item failure of a batch."""

    model_config = ConfigDict(from_attributes=True)

    index: int
    id: str | None = None
    student_id: str | None = None
    cause: str
    kind: str


class PublishBatchResponse(BaseModel):
    """Outcome of a batch publish."""

    published: int
    failed: list[BatchFailureResponse]
    interrupted: bool = False
    skipped: int = 0


class SubmitBatchResponse(BaseModel):
    """Outcome of a batch submit."""

    submitted: int
    failed: list[BatchFailureResponse]
    interrupted: bool = False
    skipped: int = 0


class LockSemesterResponse(BaseModel):
    """Outcome of a semester lock."""

    locked_count: int
    transcripts_generated: int
    transcript_errors: int
