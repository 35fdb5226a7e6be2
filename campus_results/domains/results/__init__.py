# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Results domain package.

This package provides the result lifecycle:
- ResultService: drafts, workflow transitions, locking, corrections, reads
- BulkIngestionService: one evaluation for a whole class, from rows or CSV
- VerificationService: public lookup by verification token
- ReferenceGenerator: RES-YYYY-NNNNN references

Example:
    >>> from campus_results.domains.results import ResultService
    >>> service = ResultService(db)
    >>> draft = await service.create_draft(caller, request)
"""

from campus_results.domains.results.ingestion import BulkIngestionService, parse_results_csv
from campus_results.domains.results.reference import ReferenceGenerator, format_reference
from campus_results.domains.results.service import ResultService, evaluation_key
from campus_results.domains.results.verification import VerificationService

__all__ = [
    "BulkIngestionService",
    "ReferenceGenerator",
    "ResultService",
    "VerificationService",
    "evaluation_key",
    "format_reference",
    "parse_results_csv",
]
