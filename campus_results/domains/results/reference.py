# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Human-readable result references.

References look like ``RES-2025-00042``: the prefix, the calendar year
and a five-digit sequence drawn from the ``result_<year>`` counter. The
counter row is bumped with a single ``UPDATE ... RETURNING`` so two
concurrent callers can never read the same value.
"""

import logging

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.core.errors import TransientError
from campus_results.infrastructure.database.models.counter import Counter

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5


def counter_name(year: int) -> str:
    """Name of the counter backing references of a year."""
    return f"result_{year}"


def format_reference(year: int, seq: int, prefix: str = "RES") -> str:
    """Render a reference, e.g. format_reference(2025, 42) -> 'RES-2025-00042'."""
    return f"{prefix}-{year}-{seq:0{SEQUENCE_WIDTH}d}"


class ReferenceGenerator:
    """Allocates result references from named counters.

    The increment runs inside the caller's transaction, so a rolled-back
    create does not consume a number. Callers must not retry a failed
    create blindly: once committed elsewhere the number is gone.

    Attributes:
        db: Async database session.
        prefix: Reference prefix.
    """

    def __init__(self, db: AsyncSession, prefix: str = "RES") -> None:
        self.db = db
        self.prefix = prefix

    async def next_result_ref(self, year: int) -> str:
        """Allocate one reference for the given year.

        Raises:
            TransientError: If the counter cannot be incremented.
        """
        last = await self.reserve(counter_name(year), 1)
        return format_reference(year, last, self.prefix)

    async def next_result_refs(self, year: int, count: int) -> list[str]:
        """Allocate a contiguous block of references (bulk ingestion)."""
        if count <= 0:
            return []
        last = await self.reserve(counter_name(year), count)
        first = last - count + 1
        return [format_reference(year, seq, self.prefix) for seq in range(first, last + 1)]

    async def reserve(self, name: str, count: int = 1) -> int:
        """Atomically add `count` to a counter and return the new value.

        The counter row is created on first use.
        """
        bump = (
            update(Counter)
            .where(Counter.name == name)
            .values(seq=Counter.seq + count)
            .returning(Counter.seq)
            .execution_options(synchronize_session=False)
        )
        try:
            value = (await self.db.execute(bump)).scalar_one_or_none()
            if value is None:
                await self.db.execute(self._insert_if_missing(name))
                value = (await self.db.execute(bump)).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Counter %s could not be incremented: %s", name, str(e))
            raise TransientError(
                "Reference counter unavailable",
                retry_safe=False,
                original_error=e,
            ) from e

        return int(value)

    def _insert_if_missing(self, name: str):
        dialect = self.db.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        return (
            insert(Counter)
            .values(name=name, seq=0)
            .on_conflict_do_nothing(index_elements=[Counter.name])
        )
