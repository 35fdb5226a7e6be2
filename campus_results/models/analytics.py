# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response models for class and campus analytics."""

from pydantic import BaseModel, Field


class Quartiles(BaseModel):
    q1: float
    q2: float
    q3: float


class ClassDistributionResponse(BaseModel):
    """Statistics of normalized scores for one evaluation of a class."""

    class_id: str
    subject_id: str
    evaluation_title: str
    academic_year: str
    semester: str
    count: int
    mean: float
    median: float
    stddev: float = Field(description="Population standard deviation")
    min: float
    max: float
    quartiles: Quartiles
    band_counts: dict[str, int]


class RetakeSubject(BaseModel):
    """A failed evaluation making the student retake-eligible."""

    result_id: str
    subject_id: str
    subject_name: str | None = None
    evaluation_title: str
    evaluation_type: str
    normalized_score: float
    grade_band: str | None


class RetakeStudent(BaseModel):
    """Retake cohort entry."""

    student_id: str
    first_name: str | None = None
    last_name: str | None = None
    matricule: str | None = None
    subjects: list[RetakeSubject]


class RetakeListResponse(BaseModel):
    class_id: str
    academic_year: str
    semester: str
    total_students: int
    students: list[RetakeStudent]


class PublishedStats(BaseModel):
    """Figures over published and archived results."""

    total_published: int
    avg_normalized: float | None
    passing_count: int
    passing_rate: float | None = Field(description="Percentage, 1 decimal; null when nothing is published")
    retake_eligible_count: int
    at_risk_count: int
    absent_count: int


class CampusOverviewResponse(BaseModel):
    """Facet counts and published statistics of a campus."""

    campus_id: str | None
    academic_year: str | None
    semester: str | None
    by_status: dict[str, int]
    by_evaluation_type: dict[str, int]
    by_exam_period: dict[str, int]
    published: PublishedStats
