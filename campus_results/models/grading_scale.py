# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for grading scales."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ScaleSystem = Literal["twentyPoint", "percentage", "letter", "gpa"]
EctsGrade = Literal["A", "B", "C", "D", "E", "FX", "F"]


class GradeBandSchema(BaseModel):
    """One band of a grading scale.

    Only min, max and label take part in grading; the remaining fields
    are descriptive data carried along for report cards.
    """

    min: float = Field(ge=0, description="Inclusive lower bound")
    max: float = Field(gt=0, description="Exclusive upper bound (inclusive for the last band)")
    label: str = Field(min_length=1, max_length=32)
    letter_grade: str | None = Field(default=None, max_length=4)
    gpa: float | None = Field(default=None, ge=0, le=4)
    ects_grade: EctsGrade | None = None
    ects_credits: float | None = Field(default=None, ge=0)
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class GradingScaleCreateRequest(BaseModel):
    """Payload for creating a grading scale."""

    campus_id: str | None = Field(default=None, description="Required for global callers")
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    system: ScaleSystem = "twentyPoint"
    max_score: float = Field(gt=0)
    pass_mark: float = Field(ge=0)
    bands: list[GradeBandSchema] = Field(min_length=1)
    is_default: bool = False


class GradingScaleUpdateRequest(BaseModel):
    """Patch for an active grading scale.

    The maximum score is fixed at creation. Unknown fields, max_score
    included, are refused.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    pass_mark: float | None = Field(default=None, ge=0)
    bands: list[GradeBandSchema] | None = Field(default=None, min_length=1)
    is_default: bool | None = None
    is_active: bool | None = None


class GradingScaleResponse(BaseModel):
    """Grading scale view."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    campus_id: str
    name: str
    description: str | None
    system: str
    max_score: float
    pass_mark: float
    bands: list[GradeBandSchema]
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class GradingScaleListResponse(BaseModel):
    """Grading scales of a campus."""

    items: list[GradingScaleResponse]
    total: int
