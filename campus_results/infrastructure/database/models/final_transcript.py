# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Final transcript snapshot model.

Generated when a semester is locked. A snapshot is DRAFT until a manager
validates it; validated snapshots are never regenerated.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_results.infrastructure.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    new_id,
)


class TranscriptStatus(StrEnum):
    """Lifecycle of a final transcript."""

    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    SEALED = "SEALED"


class TranscriptDecision(StrEnum):
    """End-of-period decision recorded at validation."""

    PROMOTED = "PROMOTED"
    REPEATED = "REPEATED"
    CONDITIONAL = "CONDITIONAL"
    PENDING = "PENDING"


class FinalTranscript(Base, TimestampMixin):
    """Per-student, per-period consolidated results."""

    __tablename__ = "final_transcripts"
    __table_args__ = (
        UniqueConstraint(
            "campus_id",
            "student_id",
            "academic_year",
            "semester",
            name="uq_final_transcripts_student_period",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    class_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False)
    semester: Mapped[str] = mapped_column(String(8), nullable=False)

    subjects: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    general_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_coefficients: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    class_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    class_total: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TranscriptStatus.DRAFT.value)
    decision: Mapped[str] = mapped_column(String(16), nullable=False, default=TranscriptDecision.PENDING.value)
    general_appreciation: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)

    generated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    validated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
