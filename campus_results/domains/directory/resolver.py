# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity resolver backed by the directory projection tables.

The result engine never manages students, classes, subjects or teachers.
It only asks whether an id belongs to a campus, who is enrolled in a
class, and how to label an id in a transcript.
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.infrastructure.database.models.directory import (
    ClassEnrollment,
    SchoolClass,
    Student,
    Subject,
    Teacher,
)


@dataclass(frozen=True)
class StudentInfo:
    id: str
    first_name: str
    last_name: str
    matricule: str


@dataclass(frozen=True)
class SubjectInfo:
    id: str
    name: str
    code: str
    coefficient: float | None


class IdentityResolver(Protocol):
    """Predicates and lookups the engine needs from the directory."""

    async def student_belongs_to_campus(self, student_id: str, campus_id: str) -> bool: ...

    async def class_belongs_to_campus(self, class_id: str, campus_id: str) -> bool: ...

    async def subject_belongs_to_campus(self, subject_id: str, campus_id: str) -> bool: ...

    async def teacher_belongs_to_campus(self, teacher_id: str, campus_id: str) -> bool: ...

    async def class_enrolled_students(self, class_id: str) -> set[str]: ...

    async def students(self, student_ids: Iterable[str]) -> dict[str, StudentInfo]: ...

    async def subjects(self, subject_ids: Iterable[str]) -> dict[str, SubjectInfo]: ...

    async def class_name(self, class_id: str) -> str | None: ...


class SqlIdentityResolver:
    """IdentityResolver reading the directory tables of the results database.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _campus_of(self, model, entity_id: str) -> str | None:
        result = await self.db.execute(select(model.campus_id).where(model.id == entity_id))
        return result.scalar_one_or_none()

    async def student_belongs_to_campus(self, student_id: str, campus_id: str) -> bool:
        return await self._campus_of(Student, student_id) == campus_id

    async def class_belongs_to_campus(self, class_id: str, campus_id: str) -> bool:
        return await self._campus_of(SchoolClass, class_id) == campus_id

    async def subject_belongs_to_campus(self, subject_id: str, campus_id: str) -> bool:
        return await self._campus_of(Subject, subject_id) == campus_id

    async def teacher_belongs_to_campus(self, teacher_id: str, campus_id: str) -> bool:
        return await self._campus_of(Teacher, teacher_id) == campus_id

    async def class_enrolled_students(self, class_id: str) -> set[str]:
        result = await self.db.execute(
            select(ClassEnrollment.student_id).where(ClassEnrollment.class_id == class_id)
        )
        return set(result.scalars().all())

    async def students(self, student_ids: Iterable[str]) -> dict[str, StudentInfo]:
        ids = set(student_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Student).where(Student.id.in_(ids)))
        return {
            s.id: StudentInfo(s.id, s.first_name, s.last_name, s.matricule)
            for s in result.scalars().all()
        }

    async def subjects(self, subject_ids: Iterable[str]) -> dict[str, SubjectInfo]:
        ids = set(subject_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Subject).where(Subject.id.in_(ids)))
        return {
            s.id: SubjectInfo(s.id, s.name, s.code, s.coefficient)
            for s in result.scalars().all()
        }

    async def class_name(self, class_id: str) -> str | None:
        result = await self.db.execute(select(SchoolClass.name).where(SchoolClass.id == class_id))
        return result.scalar_one_or_none()
