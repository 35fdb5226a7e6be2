# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the reference counter."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_results.domains.results.reference import ReferenceGenerator, counter_name

pytestmark = pytest.mark.integration


class TestReferenceGenerator:
    """Tests for ReferenceGenerator against SQLite."""

    async def test_counter_created_on_first_use(self, db: AsyncSession) -> None:
        """Test the first reference of a year is 00001."""
        generator = ReferenceGenerator(db)

        assert await generator.next_result_ref(2031) == "RES-2031-00001"
        assert await generator.next_result_ref(2031) == "RES-2031-00002"

    async def test_years_have_separate_counters(self, db: AsyncSession) -> None:
        """Test each year starts its own sequence."""
        generator = ReferenceGenerator(db)

        await generator.next_result_ref(2031)

        assert await generator.next_result_ref(2032) == "RES-2032-00001"

    async def test_block_is_contiguous(self, db: AsyncSession) -> None:
        """Test a bulk reservation follows the previous value without gaps."""
        generator = ReferenceGenerator(db)
        await generator.next_result_ref(2031)

        block = await generator.next_result_refs(2031, 3)

        assert block == ["RES-2031-00002", "RES-2031-00003", "RES-2031-00004"]
        assert await generator.next_result_refs(2031, 0) == []

    async def test_rollback_releases_numbers(self, db: AsyncSession) -> None:
        """Test a rolled-back allocation is not consumed."""
        generator = ReferenceGenerator(db)
        await generator.reserve(counter_name(2031))
        await db.commit()

        await generator.reserve(counter_name(2031), 10)
        await db.rollback()

        assert await generator.reserve(counter_name(2031)) == 2

    async def test_committed_values_seen_by_other_sessions(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Test two sessions never draw the same number."""
        await ReferenceGenerator(db).reserve("shared", 5)
        await db.commit()

        async with session_factory() as other:
            value = await ReferenceGenerator(other).reserve("shared")
            await other.commit()

        assert value == 6
