# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading scale service.

This module provides the GradingScaleService class for:
- Listing, creating and editing campus grading scales
- Keeping at most one default scale per campus
- Resolving the scale a result is graded against
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from campus_results.core.policy import (
    Action,
    Caller,
    Scope,
    effective_campus,
    ensure_allowed,
)
from campus_results.domains.grading_scale.bands import (
    BUILTIN_SCALE,
    Band,
    ScaleSpec,
    uncovered_pass_mark,
    validate_scale_shape,
)
from campus_results.infrastructure.database.models.grading_scale import GradingScale
from campus_results.models.grading_scale import (
    GradeBandSchema,
    GradingScaleCreateRequest,
    GradingScaleListResponse,
    GradingScaleResponse,
    GradingScaleUpdateRequest,
)

logger = logging.getLogger(__name__)


def _bands_from_schema(bands: list[GradeBandSchema]) -> list[Band]:
    bands_out = []
    for band in bands:
        extra = band.model_dump(exclude={"min", "max", "label"}, exclude_none=True)
        bands_out.append(Band(min=band.min, max=band.max, label=band.label, extra=extra))
    return bands_out


class GradingScaleService:
    """Service for managing grading scales.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize grading scale service.

        Args:
            db: Async database session.
        """
        self.db = db

    async def list_scales(
        self,
        caller: Caller,
        campus_id: str | None = None,
        include_inactive: bool = False,
    ) -> GradingScaleListResponse:
        """List the grading scales of a campus.

        Args:
            caller: Authenticated caller.
            campus_id: Campus to list; global callers must name one.
            include_inactive: Whether retired scales are included.

        Returns:
            Scales ordered with the default first, then by name.
        """
        campus = self._campus_for(caller, campus_id)
        ensure_allowed(caller, Action.READ_SCALES, Scope(campus_id=campus))

        query = select(GradingScale).where(GradingScale.campus_id == campus)
        if not include_inactive:
            query = query.where(GradingScale.is_active.is_(True))
        query = query.order_by(GradingScale.is_default.desc(), GradingScale.name)

        result = await self.db.execute(query)
        scales = result.scalars().all()
        return GradingScaleListResponse(
            items=[GradingScaleResponse.model_validate(s) for s in scales],
            total=len(scales),
        )

    async def create_scale(
        self,
        caller: Caller,
        request: GradingScaleCreateRequest,
    ) -> GradingScaleResponse:
        """Create a grading scale.

        Setting is_default clears the flag on the campus's previous
        default in the same transaction.

        Raises:
            ValidationError: If bounds or bands are inconsistent.
            ConflictError: If the campus already has a scale with that name.
        """
        campus = self._campus_for(caller, request.campus_id)
        ensure_allowed(caller, Action.MANAGE_SCALES, Scope(campus_id=campus))

        bands = validate_scale_shape(
            request.max_score,
            request.pass_mark,
            _bands_from_schema(request.bands),
        )
        await self._ensure_name_free(campus, request.name)

        if request.is_default:
            await self._clear_default(campus)

        scale = GradingScale(
            campus_id=campus,
            name=request.name,
            description=request.description,
            system=request.system,
            max_score=request.max_score,
            pass_mark=request.pass_mark,
            bands=[b.to_dict() for b in bands],
            is_default=request.is_default,
            is_active=True,
            created_by=caller.user_id,
        )
        self.db.add(scale)
        await self._commit()
        await self.db.refresh(scale)

        if uncovered_pass_mark(scale.pass_mark, bands):
            logger.warning("Pass mark %s of scale %s is not covered by any band", scale.pass_mark, scale.id)
        logger.info("Created grading scale: %s (%s) for campus %s", scale.name, scale.id, campus)

        return GradingScaleResponse.model_validate(scale)

    async def update_scale(
        self,
        caller: Caller,
        scale_id: str,
        request: GradingScaleUpdateRequest,
    ) -> GradingScaleResponse:
        """Edit an active grading scale, or retire it.

        Raises:
            NotFoundError: If the scale does not exist in the caller's campus.
            ConflictError: If the scale is retired or the new name is taken.
            ValidationError: If the resulting bounds or bands are inconsistent.
        """
        scale = await self.db.get(GradingScale, scale_id)
        if scale is None or not (caller.is_global or scale.campus_id == caller.campus_id):
            raise NotFoundError("Grading scale not found")
        ensure_allowed(caller, Action.MANAGE_SCALES, Scope(campus_id=scale.campus_id))

        if not scale.is_active:
            raise ConflictError("Retired grading scales cannot be edited")

        changes = request.model_dump(exclude_unset=True)
        if changes.get("is_active") is False and changes.get("is_default"):
            raise ValidationError(
                "A retired scale cannot be the default",
                field="is_default",
                expected="false when is_active is false",
            )

        if "name" in changes and changes["name"] != scale.name:
            await self._ensure_name_free(scale.campus_id, changes["name"])
            scale.name = changes["name"]
        if "description" in changes:
            scale.description = changes["description"]

        if {"pass_mark", "bands"} & changes.keys():
            pass_mark = request.pass_mark if request.pass_mark is not None else scale.pass_mark
            candidate = (
                _bands_from_schema(request.bands)
                if request.bands is not None
                else [Band.from_dict(b) for b in scale.bands]
            )
            bands = validate_scale_shape(scale.max_score, pass_mark, candidate)
            scale.pass_mark = pass_mark
            scale.bands = [b.to_dict() for b in bands]
            if uncovered_pass_mark(pass_mark, bands):
                logger.warning("Pass mark %s of scale %s is not covered by any band", pass_mark, scale.id)

        if changes.get("is_active") is False:
            scale.is_active = False
            scale.is_default = False
            logger.info("Retired grading scale %s", scale.id)
        elif changes.get("is_default") is True and not scale.is_default:
            await self._clear_default(scale.campus_id, keep=scale.id)
            scale.is_default = True
        elif changes.get("is_default") is False:
            scale.is_default = False

        await self._commit()
        await self.db.refresh(scale)
        return GradingScaleResponse.model_validate(scale)

    async def resolve(self, campus_id: str, scale_id: str | None) -> ScaleSpec:
        """Pick the scale a result of this campus is graded against.

        Order: the referenced scale when it exists and belongs to the
        campus, else the campus default, else the built-in scale.
        """
        if scale_id:
            scale = await self.db.get(GradingScale, scale_id)
            if scale is not None and scale.campus_id == campus_id:
                return ScaleSpec.from_model(scale)

        result = await self.db.execute(
            select(GradingScale).where(
                GradingScale.campus_id == campus_id,
                GradingScale.is_default.is_(True),
                GradingScale.is_active.is_(True),
            )
        )
        default = result.scalars().first()
        if default is not None:
            return ScaleSpec.from_model(default)

        return BUILTIN_SCALE

    async def ensure_usable(self, campus_id: str, scale_id: str) -> None:
        """Check an explicit scale reference on a write path.

        Raises:
            ValidationError: If the scale is unknown, foreign or retired.
        """
        scale = await self.db.get(GradingScale, scale_id)
        if scale is None or scale.campus_id != campus_id or not scale.is_active:
            raise ValidationError(
                "Unknown grading scale",
                field="grading_scale_id",
                expected="an active grading scale of the campus",
            )

    def _campus_for(self, caller: Caller, requested: str | None) -> str:
        campus = effective_campus(caller, requested)
        if campus is None:
            raise ValidationError("campus_id is required", field="campus_id", expected="campus id")
        return campus

    async def _ensure_name_free(self, campus_id: str, name: str) -> None:
        result = await self.db.execute(
            select(GradingScale.id).where(
                GradingScale.campus_id == campus_id,
                GradingScale.name == name,
            )
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError(f"A grading scale named '{name}' already exists")

    async def _clear_default(self, campus_id: str, keep: str | None = None) -> None:
        stmt = (
            update(GradingScale)
            .where(GradingScale.campus_id == campus_id, GradingScale.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep is not None:
            stmt = stmt.where(GradingScale.id != keep)
        await self.db.execute(stmt)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Grading scale conflicts with an existing one", retryable=True) from e
