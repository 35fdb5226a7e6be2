# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only projections of the school directory.

These tables are written by the identity services (campus, student,
teacher, subject, class CRUD). The result engine only reads them, to
check campus membership and to label transcripts and verification views.
"""

from sqlalchemy import Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_results.infrastructure.database.models.base import Base


class Student(Base):
    """Student projection."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    matricule: Mapped[str] = mapped_column(String(32), nullable=False)


class Teacher(Base):
    """Teacher projection."""

    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)


class Subject(Base):
    """Subject projection; `coefficient` is the transcript weight."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    coefficient: Mapped[float | None] = mapped_column(Float, nullable=True)


class SchoolClass(Base):
    """Class projection."""

    __tablename__ = "school_classes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campus_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class ClassEnrollment(Base):
    """Student membership of a class."""

    __tablename__ = "class_enrollments"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name="uq_class_enrollments_class_student"),
    )

    class_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
    )
