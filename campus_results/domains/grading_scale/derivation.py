# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Score derivations applied before every result write.

All functions are pure: the same score, max score, evaluation type and
scale always produce the same derived fields.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from campus_results.domains.grading_scale.bands import ScaleSpec

logger = logging.getLogger(__name__)

CANONICAL_MAX = 20
RETAKE_TYPES = frozenset({"midterm", "final", "continuous"})


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a report card does (2.345 -> 2.35), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def normalize_score(score: float, max_score: float) -> float:
    """Rescale to the canonical 0-20 axis, rounded to 2 decimals."""
    return round_half_up(score / max_score * CANONICAL_MAX, 2)


def scale_space_score(score: float, max_score: float, scale: ScaleSpec) -> float:
    """Express a raw score on the scale's own axis."""
    return score * scale.max_score / max_score


def grade_band(scaled: float, scale: ScaleSpec) -> str | None:
    """Return the label of the band containing a scale-space score.

    Lower bounds are inclusive and upper bounds exclusive, except for the
    last band, which also includes its upper bound. Scores falling in a
    gap between bands get no label.
    """
    last_index = len(scale.bands) - 1
    for index, band in enumerate(scale.bands):
        if band.min <= scaled < band.max:
            return band.label
        if index == last_index and band.min <= scaled <= band.max:
            return band.label
    return None


def is_passing(scaled: float, scale: ScaleSpec) -> bool:
    """At or above the scale's pass mark."""
    return scaled >= scale.pass_mark


def is_retake_eligible(scaled: float, scale: ScaleSpec, evaluation_type: str) -> bool:
    """Below the pass mark on a retakable evaluation type."""
    return not is_passing(scaled, scale) and evaluation_type in RETAKE_TYPES


def pass_mark_on_20(scale: ScaleSpec) -> float:
    """The scale's pass mark expressed on the canonical 0-20 axis."""
    return scale.pass_mark / scale.max_score * CANONICAL_MAX


@dataclass(frozen=True)
class Derivation:
    """Derived fields of a result.

    Attributes:
        normalized_score: Score on the canonical 0-20 axis.
        grade_band: Label of the matching band, if any.
        is_retake_eligible: Whether a retake may be scheduled.
        is_passing: Whether the score reaches the scale's pass mark.
    """

    normalized_score: float
    grade_band: str | None
    is_retake_eligible: bool
    is_passing: bool


def derive(score: float, max_score: float, evaluation_type: str, scale: ScaleSpec) -> Derivation:
    """Compute every derived field for one result.

    Args:
        score: Raw score, 0 <= score <= max_score.
        max_score: Maximum raw score, >= 1.
        evaluation_type: Evaluation type value.
        scale: Resolved grading scale.

    Returns:
        The derived fields.
    """
    scaled = scale_space_score(score, max_score, scale)
    band = grade_band(scaled, scale)
    if band is None:
        logger.warning(
            "Score %s falls outside every band of scale %s",
            scaled,
            scale.id,
        )
    return Derivation(
        normalized_score=normalize_score(score, max_score),
        grade_band=band,
        is_retake_eligible=is_retake_eligible(scaled, scale, evaluation_type),
        is_passing=is_passing(scaled, scale),
    )
