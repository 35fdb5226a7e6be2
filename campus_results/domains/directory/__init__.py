# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Directory lookups (students, classes, subjects, teachers)."""

from campus_results.domains.directory.resolver import (
    IdentityResolver,
    SqlIdentityResolver,
    StudentInfo,
    SubjectInfo,
)

__all__ = [
    "IdentityResolver",
    "SqlIdentityResolver",
    "StudentInfo",
    "SubjectInfo",
]
