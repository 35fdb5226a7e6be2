# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading scale API endpoints.

- GET / - List the scales of a campus
- POST / - Create a scale
- PATCH /{scale_id} - Edit or retire a scale
"""

import logging

from fastapi import APIRouter, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.api.dependencies import CurrentCaller, DbSession
from campus_results.domains.grading_scale import GradingScaleService
from campus_results.models.grading_scale import (
    GradingScaleCreateRequest,
    GradingScaleListResponse,
    GradingScaleResponse,
    GradingScaleUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> GradingScaleService:
    """Get grading scale service instance."""
    return GradingScaleService(db=db)


@router.get(
    "",
    response_model=GradingScaleListResponse,
    summary="List grading scales",
)
async def list_scales(
    caller: CurrentCaller,
    db: DbSession,
    campus_id: str | None = Query(None, description="Required for global callers"),
    include_inactive: bool = Query(False),
) -> GradingScaleListResponse:
    """List the grading scales of a campus, default first."""
    service = _get_service(db)
    return await service.list_scales(caller, campus_id=campus_id, include_inactive=include_inactive)


@router.post(
    "",
    response_model=GradingScaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a grading scale",
)
async def create_scale(
    data: GradingScaleCreateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> GradingScaleResponse:
    """Create a grading scale for a campus."""
    service = _get_service(db)
    scale = await service.create_scale(caller, data)
    logger.info("Created grading scale %s for campus %s", scale.id, scale.campus_id)
    return scale


@router.patch(
    "/{scale_id}",
    response_model=GradingScaleResponse,
    summary="Update a grading scale",
)
async def update_scale(
    scale_id: str,
    data: GradingScaleUpdateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> GradingScaleResponse:
    """Edit an active grading scale, or retire it with is_active=false."""
    service = _get_service(db)
    return await service.update_scale(caller, scale_id, data)
