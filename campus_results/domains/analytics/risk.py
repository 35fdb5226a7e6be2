# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dropout-risk heuristic.

risk = 100 * (wf*F + wt*T + wc*C) / (wf + wt + wc), rounded to one
decimal and clamped to [0, 100]:

- F: share of the last `window` published results below the pass threshold
- T: downward trend of those scores, clamp(-slope / slope_cap, 0, 1)
- C: share of the evaluations expected from the student's classes in
  their latest academic year that the student has no result for

The pure functions below make the score deterministic for a given
history and RiskSettings. DropoutRiskService reads the history and
writes the score onto the result that triggered the computation.
"""

import logging
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.config import RiskSettings, Settings, get_settings
from campus_results.domains.grading_scale.derivation import round_half_up
from campus_results.infrastructure.database.models.result import PUBLISHED_STATUSES, Result

logger = logging.getLogger(__name__)


def failure_rate(scores: Sequence[float], pass_threshold: float) -> float:
    """Share of scores strictly below the pass threshold (0 when empty)."""
    if not scores:
        return 0.0
    return sum(1 for s in scores if s < pass_threshold) / len(scores)


def trend_slope(scores: Sequence[float]) -> float:
    """Least-squares slope of scores against their position (0 for < 2 points)."""
    n = len(scores)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2
    mean_y = sum(scores) / n
    numerator = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(scores))
    denominator = sum((x - mean_x) ** 2 for x in range(n))
    return numerator / denominator


def trend_signal(slope: float, slope_cap: float) -> float:
    """Map a slope to [0, 1]; only declines count."""
    return min(max(-slope / slope_cap, 0.0), 1.0)


def coverage_gap(expected: int, present: int) -> float:
    """Share of expected evaluations that are missing (0 when nothing is expected)."""
    if expected <= 0:
        return 0.0
    return min(max(1 - present / expected, 0.0), 1.0)


def dropout_risk(
    scores: Sequence[float],
    expected: int,
    present: int,
    config: RiskSettings,
) -> float:
    """Combine the three signals into a score in [0, 100].

    Args:
        scores: Normalized scores of the most recent published results,
            oldest first.
        expected: Evaluations expected from the student.
        present: Expected evaluations the student has a result for.
        config: Weights and thresholds.
    """
    f = failure_rate(scores, config.pass_threshold)
    t = trend_signal(trend_slope(scores), config.slope_cap)
    c = coverage_gap(expected, present)
    total_weight = config.failure_weight + config.trend_weight + config.coverage_weight
    weighted = config.failure_weight * f + config.trend_weight * t + config.coverage_weight * c
    score = round_half_up(100 * weighted / total_weight, 1)
    return min(max(score, 0.0), 100.0)


class DropoutRiskService:
    """Recomputes the dropout-risk score of a student.

    Attributes:
        db: Async database session, owned by the caller.
        config: Risk configuration.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.config = (settings or get_settings()).risk

    def _published(self, campus_id: str):
        return (
            Result.campus_id == campus_id,
            Result.status.in_([s.value for s in PUBLISHED_STATUSES]),
            Result.is_deleted.is_(False),
        )

    async def recent_scores(self, campus_id: str, student_id: str) -> list[float]:
        """Normalized scores of the last `window` published results, oldest first."""
        result = await self.db.execute(
            select(Result.normalized_score)
            .where(Result.student_id == student_id, *self._published(campus_id))
            .order_by(Result.published_at.desc(), Result.reference.desc())
            .limit(self.config.window)
        )
        return list(reversed(result.scalars().all()))

    async def coverage(self, campus_id: str, student_id: str) -> tuple[int, int]:
        """(expected, present) evaluations for the student's latest academic year."""
        published = self._published(campus_id)
        latest_year = (
            await self.db.execute(
                select(func.max(Result.academic_year)).where(Result.student_id == student_id, *published)
            )
        ).scalar_one_or_none()
        if latest_year is None:
            return 0, 0

        classes = select(Result.class_id).where(
            Result.student_id == student_id,
            Result.academic_year == latest_year,
            *published,
        )
        evaluation = (Result.class_id, Result.subject_id, Result.evaluation_title)
        expected = (
            await self.db.execute(
                select(*evaluation)
                .where(Result.class_id.in_(classes), Result.academic_year == latest_year, *published)
                .distinct()
            )
        ).all()
        present = (
            await self.db.execute(
                select(*evaluation)
                .where(Result.student_id == student_id, Result.academic_year == latest_year, *published)
                .distinct()
            )
        ).all()
        return len(expected), len(set(present) & set(expected))

    async def recompute(self, result_id: str) -> float | None:
        """Compute the student's score and store it on the given result.

        The write is a plain column update: no version bump, no audit entry.

        Returns:
            The stored score, or None when the result is no longer published.
        """
        record = await self.db.get(Result, result_id)
        if record is None or record.is_deleted or not record.is_published:
            logger.debug("Skipping dropout risk for result %s", result_id)
            return None

        scores = await self.recent_scores(record.campus_id, record.student_id)
        expected, present = await self.coverage(record.campus_id, record.student_id)
        score = dropout_risk(scores, expected, present, self.config)

        await self.db.execute(
            update(Result)
            .where(Result.id == record.id)
            .values(dropout_risk_score=score)
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Dropout risk for student %s = %s (window=%d, expected=%d, present=%d)",
            record.student_id,
            score,
            len(scores),
            expected,
            present,
        )
        return score
