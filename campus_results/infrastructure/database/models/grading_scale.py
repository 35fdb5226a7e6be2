# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading scale model."""

from typing import Any

from sqlalchemy import Boolean, Float, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from campus_results.infrastructure.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    new_id,
)


class GradingScale(Base, TimestampMixin):
    """Named, campus-scoped grading scale.

    Bands are stored sorted by `min` as a JSON list of
    {min, max, label, letter_grade?, gpa?, ects_grade?, ects_credits?, color?}.
    """

    __tablename__ = "grading_scales"
    __table_args__ = (
        UniqueConstraint("campus_id", "name", name="uq_grading_scales_campus_name"),
        Index(
            "uq_grading_scales_one_default",
            "campus_id",
            unique=True,
            postgresql_where=text("is_default = true"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    system: Mapped[str] = mapped_column(String(16), nullable=False)
    max_score: Mapped[float] = mapped_column(Float, nullable=False)
    pass_mark: Mapped[float] = mapped_column(Float, nullable=False)
    bands: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<GradingScale {self.name} campus={self.campus_id}>"
