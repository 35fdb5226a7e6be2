# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the directory projections and their seed."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.domains.directory.resolver import SqlIdentityResolver
from campus_results.infrastructure.database.models import ClassEnrollment

pytestmark = pytest.mark.integration


class TestDirectorySeed:
    """Tests for the seeded directory with foreign keys enforced."""

    async def test_enrollments_seeded(self, db: AsyncSession) -> None:
        """Test enrollments were stored after the students and classes they reference."""
        resolver = SqlIdentityResolver(db)

        assert await resolver.class_enrolled_students("C1") == {"S1", "S2", "S3"}
        assert await resolver.class_enrolled_students("C9") == {"S9"}

    async def test_campus_membership(self, db: AsyncSession) -> None:
        """Test membership checks follow the seeded campuses."""
        resolver = SqlIdentityResolver(db)

        assert await resolver.student_belongs_to_campus("S1", "T1")
        assert not await resolver.student_belongs_to_campus("S9", "T1")
        assert await resolver.class_name("C1") == "6e A"

    async def test_foreign_keys_enforced(self, db: AsyncSession) -> None:
        """Test an enrollment naming an unknown student is refused."""
        db.add(ClassEnrollment(class_id="C1", student_id="NOBODY"))

        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()
