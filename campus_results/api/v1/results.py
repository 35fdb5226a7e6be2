# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Result API endpoints.

This module provides endpoints for the result lifecycle:
- POST / - Create a draft
- GET / - List results with filtering
- GET /{result_id} - Get result details
- PATCH /{result_id} - Edit a draft
- DELETE /{result_id} - Soft delete

Ingestion endpoints:
- POST /bulk - Bulk create drafts from JSON rows
- POST /upload-csv - Bulk create drafts from a CSV file

Workflow endpoints:
- POST /{result_id}/submit - DRAFT -> SUBMITTED
- POST /{result_id}/publish - SUBMITTED -> PUBLISHED
- POST /{result_id}/archive - PUBLISHED -> ARCHIVED
- POST /submit-batch - Submit many results (207 on partial success)
- POST /publish-batch - Publish many results (207 on partial success)
- POST /lock-semester - Lock a period and generate final transcripts
- POST /{result_id}/audit-correct - Correct a published result

Every engine error is translated by the application's exception handlers.
"""

import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, File, Form, Query, Response, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.api.dependencies import CurrentCaller, DbSession
from campus_results.core.errors import BatchOutcome
from campus_results.domains.results import BulkIngestionService, ResultService
from campus_results.infrastructure.database.models.result import (
    EvaluationType,
    ExamAttendance,
    ExamPeriod,
    ResultStatus,
    Semester,
)
from campus_results.models.ingestion import BulkCreateRequest, BulkCreateResponse
from campus_results.models.result import (
    MAX_PAGE_SIZE,
    AuditCorrectionRequest,
    BatchFailureResponse,
    BatchTransitionRequest,
    LockSemesterRequest,
    LockSemesterResponse,
    PublishBatchResponse,
    ResultCreateRequest,
    ResultFilters,
    ResultListResponse,
    ResultResponse,
    ResultUpdateRequest,
    SubmitBatchResponse,
    TransitionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MULTI_STATUS = 207


def _get_service(db: AsyncSession) -> ResultService:
    """Get result service instance.

    Args:
        db: Database session.

    Returns:
        Configured ResultService instance.
    """
    return ResultService(db=db)


def _get_ingestion_service(db: AsyncSession) -> BulkIngestionService:
    """Get bulk ingestion service instance."""
    return BulkIngestionService(db=db)


def _failures(outcome: BatchOutcome) -> list[BatchFailureResponse]:
    return [BatchFailureResponse(**asdict(failure)) for failure in outcome.failed]


# =============================================================================
# Ingestion
# =============================================================================


@router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    responses={MULTI_STATUS: {"model": BulkCreateResponse}},
    summary="Bulk create drafts",
    description="Insert draft results for a class evaluation. Rows that fail are reported, not raised.",
)
async def bulk_create(
    data: BulkCreateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> JSONResponse:
    """Bulk create drafts from JSON rows."""
    service = _get_ingestion_service(db)
    outcome = await service.bulk_create_drafts(caller, data)
    logger.info(
        "Bulk ingestion: %d inserted, %d skipped",
        outcome.inserted_count,
        outcome.skipped_count,
    )
    return JSONResponse(
        status_code=MULTI_STATUS if outcome.errors else status.HTTP_200_OK,
        content=outcome.model_dump(mode="json"),
    )


@router.post(
    "/upload-csv",
    response_model=BulkCreateResponse,
    responses={MULTI_STATUS: {"model": BulkCreateResponse}},
    summary="Upload a CSV of results",
    description="Columns: studentId, score, and optionally comment, coefficient, examAttendance.",
)
async def upload_csv(
    caller: CurrentCaller,
    db: DbSession,
    file: Annotated[UploadFile, File(description="CSV file")],
    class_id: Annotated[str, Form()],
    subject_id: Annotated[str, Form()],
    teacher_id: Annotated[str, Form()],
    evaluation_type: Annotated[EvaluationType, Form()],
    evaluation_title: Annotated[str, Form()],
    academic_year: Annotated[str, Form()],
    semester: Annotated[Semester, Form()],
    campus_id: Annotated[str | None, Form()] = None,
    max_score: Annotated[float, Form()] = 20.0,
    coefficient: Annotated[float, Form()] = 1.0,
    grading_scale_id: Annotated[str | None, Form()] = None,
    exam_period: Annotated[ExamPeriod | None, Form()] = None,
    default_attendance: Annotated[ExamAttendance, Form()] = ExamAttendance.PRESENT,
) -> JSONResponse:
    """Bulk create drafts from an uploaded CSV."""
    header = BulkCreateRequest(
        campus_id=campus_id,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        evaluation_type=evaluation_type,
        evaluation_title=evaluation_title,
        academic_year=academic_year,
        semester=semester,
        max_score=max_score,
        coefficient=coefficient,
        grading_scale_id=grading_scale_id,
        exam_period=exam_period,
        default_attendance=default_attendance,
        rows=[],
    )
    content = await file.read()
    service = _get_ingestion_service(db)
    outcome = await service.bulk_create_from_csv(caller, header, content)
    logger.info(
        "CSV ingestion %s: %d inserted, %d skipped",
        file.filename,
        outcome.inserted_count,
        outcome.skipped_count,
    )
    return JSONResponse(
        status_code=MULTI_STATUS if outcome.errors else status.HTTP_200_OK,
        content=outcome.model_dump(mode="json"),
    )


# =============================================================================
# Batch workflow
# =============================================================================


@router.post(
    "/submit-batch",
    response_model=SubmitBatchResponse,
    responses={MULTI_STATUS: {"model": SubmitBatchResponse}},
    summary="Submit many results",
)
async def submit_batch(
    data: BatchTransitionRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> JSONResponse:
    """Submit the results named by a selector or an item list."""
    service = _get_service(db)
    outcome = await service.submit_batch(caller, data)
    body = SubmitBatchResponse(
        submitted=outcome.ok,
        failed=_failures(outcome),
        interrupted=outcome.interrupted,
        skipped=outcome.skipped,
    )
    return JSONResponse(
        status_code=MULTI_STATUS if outcome.is_partial else status.HTTP_200_OK,
        content=body.model_dump(mode="json"),
    )


@router.post(
    "/publish-batch",
    response_model=PublishBatchResponse,
    responses={MULTI_STATUS: {"model": PublishBatchResponse}},
    summary="Publish many results",
)
async def publish_batch(
    data: BatchTransitionRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> JSONResponse:
    """Publish the results named by a selector or an item list."""
    service = _get_service(db)
    outcome = await service.publish_batch(caller, data)
    body = PublishBatchResponse(
        published=outcome.ok,
        failed=_failures(outcome),
        interrupted=outcome.interrupted,
        skipped=outcome.skipped,
    )
    return JSONResponse(
        status_code=MULTI_STATUS if outcome.is_partial else status.HTTP_200_OK,
        content=body.model_dump(mode="json"),
    )


@router.post(
    "/lock-semester",
    response_model=LockSemesterResponse,
    summary="Lock a period",
    description="Lock every published result of a period and generate final transcripts.",
)
async def lock_semester(
    data: LockSemesterRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> LockSemesterResponse:
    """Lock a period."""
    service = _get_service(db)
    return await service.lock_semester(caller, data)


# =============================================================================
# CRUD
# =============================================================================


@router.post(
    "",
    response_model=ResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft result",
)
async def create_result(
    data: ResultCreateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> ResultResponse:
    """Create a result in DRAFT."""
    service = _get_service(db)
    result = await service.create_draft(caller, data)
    logger.info("Created result %s", result.reference)
    return result


@router.get(
    "",
    response_model=ResultListResponse,
    summary="List results",
)
async def list_results(
    caller: CurrentCaller,
    db: DbSession,
    campus_id: str | None = Query(None, description="Campus filter (global callers)"),
    class_id: str | None = Query(None),
    subject_id: str | None = Query(None),
    teacher_id: str | None = Query(None),
    student_id: str | None = Query(None),
    result_status: ResultStatus | None = Query(None, alias="status"),
    evaluation_type: EvaluationType | None = Query(None),
    academic_year: str | None = Query(None),
    semester: Semester | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> ResultListResponse:
    """List results visible to the caller, newest first."""
    filters = ResultFilters(
        campus_id=campus_id,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        student_id=student_id,
        status=result_status,
        evaluation_type=evaluation_type,
        academic_year=academic_year,
        semester=semester,
    )
    service = _get_service(db)
    return await service.list(caller, filters, page=page, page_size=page_size)


@router.get(
    "/{result_id}",
    response_model=ResultResponse,
    summary="Get a result",
)
async def get_result(
    result_id: str,
    caller: CurrentCaller,
    db: DbSession,
) -> ResultResponse:
    """Get result details."""
    service = _get_service(db)
    return await service.get_by_id(caller, result_id)


@router.patch(
    "/{result_id}",
    response_model=ResultResponse,
    summary="Edit a draft",
)
async def update_result(
    result_id: str,
    data: ResultUpdateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> ResultResponse:
    """Edit a draft result."""
    service = _get_service(db)
    return await service.update_draft(caller, result_id, data)


@router.delete(
    "/{result_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft delete a result",
    description="Drafts are deleted by their owner. Other statuses need a global role and a reason.",
)
async def delete_result(
    result_id: str,
    caller: CurrentCaller,
    db: DbSession,
    reason: str | None = Query(None, description="Required when deleting a non-draft result"),
) -> Response:
    """Soft delete a result."""
    service = _get_service(db)
    await service.soft_delete(caller, result_id, reason=reason)
    logger.info("Deleted result %s", result_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Single-record workflow
# =============================================================================


@router.post(
    "/{result_id}/submit",
    response_model=ResultResponse,
    summary="Submit a draft",
)
async def submit_result(
    result_id: str,
    caller: CurrentCaller,
    db: DbSession,
    data: TransitionRequest | None = None,
) -> ResultResponse:
    """DRAFT -> SUBMITTED."""
    service = _get_service(db)
    return await service.submit(caller, result_id, data.expected_version if data else None)


@router.post(
    "/{result_id}/publish",
    response_model=ResultResponse,
    summary="Publish a submitted result",
)
async def publish_result(
    result_id: str,
    caller: CurrentCaller,
    db: DbSession,
    data: TransitionRequest | None = None,
) -> ResultResponse:
    """SUBMITTED -> PUBLISHED, issuing the verification token."""
    service = _get_service(db)
    result = await service.publish(caller, result_id, data.expected_version if data else None)
    logger.info("Published result %s", result.reference)
    return result


@router.post(
    "/{result_id}/archive",
    response_model=ResultResponse,
    summary="Archive a published result",
)
async def archive_result(
    result_id: str,
    caller: CurrentCaller,
    db: DbSession,
    data: TransitionRequest | None = None,
) -> ResultResponse:
    """PUBLISHED -> ARCHIVED."""
    service = _get_service(db)
    return await service.archive(caller, result_id, data.expected_version if data else None)


@router.post(
    "/{result_id}/audit-correct",
    response_model=ResultResponse,
    summary="Correct a published result",
    description="Records one audit entry per changed field. Status and verification token are kept.",
)
async def audit_correct_result(
    result_id: str,
    data: AuditCorrectionRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> ResultResponse:
    """Audited correction of a published or archived result."""
    service = _get_service(db)
    result = await service.audit_correct(caller, result_id, data)
    logger.info("Corrected result %s", result.reference)
    return result
