# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for Campus Results.

This package contains domain services that encapsulate the result
engine's business rules. Services take an AsyncSession and commit their
own unit of work.

Domains:
    results: Result workflow, bulk ingestion and public verification.
    grading_scale: Grading scales and score derivations.
    transcript: Weighted semester transcripts.
    final_transcript: Snapshots generated when a semester is locked.
    analytics: Class and campus analytics, dropout risk.
    directory: Read-only identity lookups.
"""
