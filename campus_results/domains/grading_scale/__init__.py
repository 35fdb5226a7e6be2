# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading scale domain package.

This package provides:
- GradingScaleService: campus scale management and resolution
- Band/ScaleSpec: immutable scale descriptions, including the built-in 0-20 scale
- derive: the derivations applied to every result write
"""

from campus_results.domains.grading_scale.bands import (
    BUILTIN_SCALE,
    BUILTIN_SCALE_ID,
    Band,
    ScaleSpec,
    validate_scale_shape,
)
from campus_results.domains.grading_scale.derivation import (
    Derivation,
    derive,
    grade_band,
    normalize_score,
    round_half_up,
)
from campus_results.domains.grading_scale.service import GradingScaleService

__all__ = [
    "BUILTIN_SCALE",
    "BUILTIN_SCALE_ID",
    "Band",
    "Derivation",
    "GradingScaleService",
    "ScaleSpec",
    "derive",
    "grade_band",
    "normalize_score",
    "round_half_up",
    "validate_scale_shape",
]
