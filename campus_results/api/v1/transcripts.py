# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Transcript API endpoints.

- GET /transcripts/{student_id} - Live weighted transcript
- GET /final-transcripts/{student_id} - Final transcript snapshot of a period
- POST /final-transcripts/{transcript_id}/validate - Validate a snapshot
"""

import logging

from fastapi import APIRouter, Query

from campus_results.api.dependencies import CurrentCaller, DbSession
from campus_results.domains.final_transcript import FinalTranscriptService
from campus_results.domains.transcript import TranscriptService
from campus_results.infrastructure.database.models.result import Semester
from campus_results.models.result import ACADEMIC_YEAR_PATTERN
from campus_results.models.transcript import (
    FinalTranscriptResponse,
    FinalTranscriptValidateRequest,
    TranscriptResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/transcripts/{student_id}",
    response_model=TranscriptResponse,
    summary="Get a student's transcript",
    description="Coefficient-weighted averages per semester over published results.",
)
async def get_transcript(
    student_id: str,
    caller: CurrentCaller,
    db: DbSession,
    academic_year: str | None = Query(None, pattern=ACADEMIC_YEAR_PATTERN),
) -> TranscriptResponse:
    """Get the live transcript of a student."""
    service = TranscriptService(db=db)
    return await service.get_transcript(caller, student_id, academic_year=academic_year)


@router.get(
    "/final-transcripts/{student_id}",
    response_model=FinalTranscriptResponse,
    summary="Get a final transcript",
)
async def get_final_transcript(
    student_id: str,
    caller: CurrentCaller,
    db: DbSession,
    academic_year: str = Query(..., pattern=ACADEMIC_YEAR_PATTERN),
    semester: Semester = Query(...),
) -> FinalTranscriptResponse:
    """Get the snapshot generated when the period was locked."""
    service = FinalTranscriptService(db=db)
    return await service.get_final_transcript(caller, student_id, academic_year, semester.value)


@router.post(
    "/final-transcripts/{transcript_id}/validate",
    response_model=FinalTranscriptResponse,
    summary="Validate a final transcript",
)
async def validate_final_transcript(
    transcript_id: str,
    data: FinalTranscriptValidateRequest,
    caller: CurrentCaller,
    db: DbSession,
) -> FinalTranscriptResponse:
    """DRAFT -> VALIDATED, recording the decision."""
    service = FinalTranscriptService(db=db)
    transcript = await service.validate(caller, transcript_id, data)
    logger.info("Validated final transcript %s", transcript_id)
    return transcript
