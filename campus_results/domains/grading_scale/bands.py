# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading scale value objects and band validation.

Bands are half-open [min, max) except the last one, which is closed on
both ends so that a perfect score always lands in a band. The built-in
fallback scale is written contiguously for the same reason: no score in
[0, 20] falls between two bands.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from campus_results.core.errors import ValidationError

BUILTIN_SCALE_ID = "builtin"


@dataclass(frozen=True)
class Band:
    """One labelled score range of a scale.

    Attributes:
        min: Inclusive lower bound, in scale space.
        max: Exclusive upper bound (inclusive for the last band).
        label: Band label, e.g. "A" or "Pass".
        extra: Optional descriptive data (letter grade, GPA, ECTS, color).
    """

    min: float
    max: float
    label: str
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage in the bands JSON column."""
        return {"min": self.min, "max": self.max, "label": self.label, **self.extra}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Band":
        """Rebuild a band from its stored form."""
        extra = {k: v for k, v in data.items() if k not in ("min", "max", "label") and v is not None}
        return cls(min=float(data["min"]), max=float(data["max"]), label=str(data["label"]), extra=extra)


@dataclass(frozen=True)
class ScaleSpec:
    """Resolved grading scale used by the derivations.

    Attributes:
        id: Scale id, or BUILTIN_SCALE_ID for the fallback.
        name: Scale name.
        system: twentyPoint, percentage, letter or gpa.
        max_score: Top of the scale.
        pass_mark: Scale-space pass mark.
        bands: Bands sorted by min.
    """

    id: str
    name: str
    system: str
    max_score: float
    pass_mark: float
    bands: tuple[Band, ...]

    @property
    def is_builtin(self) -> bool:
        return self.id == BUILTIN_SCALE_ID

    @classmethod
    def from_model(cls, scale: Any) -> "ScaleSpec":
        """Build from a GradingScale row."""
        return cls(
            id=scale.id,
            name=scale.name,
            system=scale.system,
            max_score=float(scale.max_score),
            pass_mark=float(scale.pass_mark),
            bands=tuple(Band.from_dict(b) for b in scale.bands),
        )


BUILTIN_SCALE = ScaleSpec(
    id=BUILTIN_SCALE_ID,
    name="Built-in 20-point scale",
    system="twentyPoint",
    max_score=20.0,
    pass_mark=10.0,
    bands=(
        Band(0.0, 10.0, "F"),
        Band(10.0, 12.0, "D"),
        Band(12.0, 14.0, "C"),
        Band(14.0, 16.0, "B"),
        Band(16.0, 20.0, "A"),
    ),
)


def validate_scale_shape(max_score: float, pass_mark: float, bands: Iterable[Band]) -> tuple[Band, ...]:
    """Check scale bounds and bands, returning the bands sorted by min.

    Args:
        max_score: Top of the scale.
        pass_mark: Scale-space pass mark.
        bands: Candidate bands, in any order.

    Returns:
        Bands sorted by their lower bound.

    Raises:
        ValidationError: If a bound is out of range, a band is empty or
            two bands overlap. Adjacent bands (one ending where the next
            starts) are accepted.
    """
    if max_score <= 0:
        raise ValidationError("maxScore must be positive", field="max_score", expected="> 0")
    if pass_mark < 0 or pass_mark > max_score:
        raise ValidationError(
            "passMark must lie between 0 and maxScore",
            field="pass_mark",
            expected=f"0 <= pass_mark <= {max_score}",
        )

    ordered = tuple(sorted(bands, key=lambda b: b.min))
    if not ordered:
        raise ValidationError("A grading scale needs at least one band", field="bands", expected="non-empty list")

    labels: set[str] = set()
    for index, band in enumerate(ordered):
        if not (0 <= band.min < band.max <= max_score):
            raise ValidationError(
                f"Band '{band.label}' must satisfy 0 <= min < max <= maxScore",
                field=f"bands[{index}]",
                expected=f"0 <= min < max <= {max_score}",
            )
        if band.label in labels:
            raise ValidationError(
                f"Band label '{band.label}' is used twice",
                field=f"bands[{index}].label",
                expected="unique labels",
            )
        labels.add(band.label)
        if index > 0 and ordered[index - 1].max > band.min:
            raise ValidationError(
                f"Bands '{ordered[index - 1].label}' and '{band.label}' overlap",
                field="bands",
                expected="non-overlapping ranges",
            )

    return ordered


def uncovered_pass_mark(pass_mark: float, bands: Iterable[Band]) -> bool:
    """Whether no band contains the pass mark (allowed, but worth a warning)."""
    bands = tuple(bands)
    for index, band in enumerate(bands):
        last = index == len(bands) - 1
        if band.min <= pass_mark < band.max or (last and band.min <= pass_mark <= band.max):
            return False
    return True
