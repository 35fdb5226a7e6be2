# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Public verification endpoint.

Third parties holding a verification token can confirm a published result
without authenticating. Every failure looks the same to the client.
"""

import logging

from fastapi import APIRouter, Request

from campus_results.api.dependencies import DbSession
from campus_results.api.middleware.rate_limit import limiter, verification_rate
from campus_results.core.errors import NotFoundError, ResultEngineError
from campus_results.domains.results import VerificationService
from campus_results.models.transcript import VerificationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/results/verify/{token}",
    response_model=VerificationResponse,
    summary="Verify a published result",
)
@limiter.limit(verification_rate)
async def verify_result(request: Request, token: str, db: DbSession) -> VerificationResponse:
    """Resolve a verification token to the public view of a result."""
    service = VerificationService(db=db)
    try:
        return await service.verify_by_token(token)
    except ResultEngineError as e:
        logger.info("Verification lookup failed: %s", e.kind)
        raise NotFoundError("Invalid or expired verification token") from e
