# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Result record model.

One row per student per evaluation. The `version` column is the mapper's
version counter: every ORM flush issues `UPDATE ... WHERE version = :read`
and fails with StaleDataError when another writer got there first.
"""

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from campus_results.infrastructure.database.models.base import (
    Base,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    new_id,
)


class ResultStatus(StrEnum):
    """Workflow states of a result."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class Semester(StrEnum):
    """Academic periods."""

    S1 = "S1"
    S2 = "S2"
    ANNUAL = "Annual"


class EvaluationType(StrEnum):
    """Kinds of graded activity."""

    QUIZ = "quiz"
    MIDTERM = "midterm"
    FINAL = "final"
    MOCK = "mock"
    ORAL = "oral"
    PRACTICAL = "practical"
    CONTINUOUS = "continuous"


class ExamPeriod(StrEnum):
    """Exam session labels."""

    MIDTERM = "Midterm"
    FINAL = "Final"
    QUIZ = "Quiz"
    ASSIGNMENT = "Assignment"
    PROJECT = "Project"
    PRACTICAL = "Practical"


class ExamAttendance(StrEnum):
    """Student attendance at the evaluation."""

    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


PUBLISHED_STATUSES = (ResultStatus.PUBLISHED, ResultStatus.ARCHIVED)


class Result(Base, TimestampMixin, SoftDeleteMixin):
    """A graded evaluation of one student."""

    __tablename__ = "results"
    __table_args__ = (
        Index("ix_results_campus_period", "campus_id", "academic_year", "semester"),
        Index("ix_results_class_evaluation", "class_id", "subject_id", "evaluation_title"),
        Index("ix_results_student", "student_id", "academic_year"),
        Index(
            "uq_results_evaluation_key_live",
            "evaluation_key",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'PUBLISHED', 'ARCHIVED')",
            name="valid_result_status",
        ),
        CheckConstraint("score >= 0 AND score <= max_score", name="score_within_max"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    reference: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False)
    semester: Mapped[str] = mapped_column(String(8), nullable=False)

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False)

    evaluation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    evaluation_title: Mapped[str] = mapped_column(String(100), nullable=False)
    evaluation_key: Mapped[str] = mapped_column(String(64), nullable=False)

    score: Mapped[float] = mapped_column(Float, nullable=False)
    max_score: Mapped[float] = mapped_column(Float, nullable=False, default=20.0)
    coefficient: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    grading_scale_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    normalized_score: Mapped[float] = mapped_column(Float, nullable=False)
    grade_band: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_retake_eligible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_passing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ResultStatus.DRAFT.value)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    verification_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    audit_trail: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    period_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    retake_of: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("results.id", ondelete="RESTRICT"),
        nullable=True,
    )
    dropout_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    teacher_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    class_manager_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    class_manager_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    strengths: Mapped[str | None] = mapped_column(Text, nullable=True)
    improvements: Mapped[str | None] = mapped_column(Text, nullable=True)
    exam_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    exam_period: Mapped[str | None] = mapped_column(String(16), nullable=True)
    exam_attendance: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ExamAttendance.PRESENT.value,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_published(self) -> bool:
        """Whether the record has reached publication."""
        return self.status in PUBLISHED_STATUSES

    def append_audit(self, entry: dict[str, Any]) -> None:
        """Append an audit entry.

        The list is reassigned so the JSON column is flagged dirty.
        """
        self.audit_trail = [*(self.audit_trail or []), entry]

    def __repr__(self) -> str:
        return f"<Result {self.reference} {self.status}>"
