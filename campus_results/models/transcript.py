# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response models for transcripts, final transcripts and verification."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from campus_results.infrastructure.database.models.final_transcript import TranscriptDecision


class TranscriptEvaluation(BaseModel):
    """One evaluation contributing to a subject average."""

    result_id: str
    reference: str
    evaluation_type: str
    evaluation_title: str
    score: float
    max_score: float
    score_on_20: float
    grade_band: str | None


class TranscriptSubject(BaseModel):
    """Subject line of a semester."""

    subject_id: str
    name: str | None = None
    code: str | None = None
    coefficient: float
    average: float = Field(description="Mean of the evaluations on the 0-20 axis")
    evaluations: list[TranscriptEvaluation] = Field(default_factory=list)


class TranscriptSemester(BaseModel):
    """Weighted results of one period."""

    academic_year: str
    semester: str
    subjects: list[TranscriptSubject]
    total_coefficient: float
    general_average: float | None = Field(description="Null when every coefficient is zero")


class TranscriptResponse(BaseModel):
    """Semester-grouped transcript of a student."""

    student_id: str
    semesters: list[TranscriptSemester]


class VerificationStudent(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    matricule: str | None = None


class VerificationSubject(BaseModel):
    name: str | None = None
    code: str | None = None


class VerificationClass(BaseModel):
    name: str | None = None


class VerificationResponse(BaseModel):
    """Minimal public view of a published result."""

    is_authentic: bool = True
    reference: str
    student: VerificationStudent
    subject: VerificationSubject
    school_class: VerificationClass = Field(serialization_alias="class")
    academic_year: str
    semester: str
    evaluation_type: str
    evaluation_title: str
    score_on_20: float
    grade_band: str | None
    published_at: datetime | None


class FinalSubjectLine(BaseModel):
    """Subject line frozen into a final transcript."""

    subject_id: str
    name: str | None = None
    code: str | None = None
    coefficient: float
    average: float
    is_passing: bool
    evaluation_count: int


class FinalTranscriptResponse(BaseModel):
    """Final transcript snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    campus_id: str
    student_id: str
    class_id: str | None
    academic_year: str
    semester: str
    subjects: list[FinalSubjectLine]
    general_average: float | None
    total_coefficients: float
    class_rank: int | None
    class_total: int | None
    status: str
    decision: str
    general_appreciation: str | None
    verification_token: str | None
    generated_by: str
    validated_by: str | None
    validated_at: datetime | None


class FinalTranscriptValidateRequest(BaseModel):
    """Manager validation of a final transcript."""

    decision: TranscriptDecision | None = None
    general_appreciation: str | None = Field(default=None, max_length=1000)
