# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for Campus Results.

Importing this package registers every table on Base.metadata.
"""

from campus_results.infrastructure.database.models.base import (
    Base,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    new_id,
)
from campus_results.infrastructure.database.models.counter import Counter
from campus_results.infrastructure.database.models.directory import (
    ClassEnrollment,
    SchoolClass,
    Student,
    Subject,
    Teacher,
)
from campus_results.infrastructure.database.models.final_transcript import (
    FinalTranscript,
    TranscriptDecision,
    TranscriptStatus,
)
from campus_results.infrastructure.database.models.grading_scale import GradingScale
from campus_results.infrastructure.database.models.result import (
    PUBLISHED_STATUSES,
    EvaluationType,
    ExamAttendance,
    ExamPeriod,
    Result,
    ResultStatus,
    Semester,
)

__all__ = [
    # Base
    "Base",
    "JSONType",
    "TimestampMixin",
    "SoftDeleteMixin",
    "new_id",
    # Results
    "Result",
    "ResultStatus",
    "Semester",
    "EvaluationType",
    "ExamPeriod",
    "ExamAttendance",
    "PUBLISHED_STATUSES",
    # Scales, counters, transcripts
    "GradingScale",
    "Counter",
    "FinalTranscript",
    "TranscriptStatus",
    "TranscriptDecision",
    # Directory projections
    "Student",
    "Teacher",
    "Subject",
    "SchoolClass",
    "ClassEnrollment",
]
