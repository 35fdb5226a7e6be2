# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial result engine schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-15

Creates the result, grading scale, counter and final transcript tables,
plus the directory projections (students, teachers, subjects, classes,
enrollments) the engine reads for membership and display names.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create result engine tables."""
    # ==========================================================================
    # 1. Directory projections
    # ==========================================================================
    op.create_table(
        "students",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("matricule", sa.String(32), nullable=False),
    )
    op.create_index("ix_students_campus_id", "students", ["campus_id"])

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
    )
    op.create_index("ix_teachers_campus_id", "teachers", ["campus_id"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("coefficient", sa.Float, nullable=True),
    )
    op.create_index("ix_subjects_campus_id", "subjects", ["campus_id"])

    op.create_table(
        "school_classes",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
    )
    op.create_index("ix_school_classes_campus_id", "school_classes", ["campus_id"])

    op.create_table(
        "class_enrollments",
        sa.Column(
            "class_id",
            sa.String(64),
            sa.ForeignKey("school_classes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "student_id",
            sa.String(64),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.UniqueConstraint("class_id", "student_id", name="uq_class_enrollments_class_student"),
    )

    # ==========================================================================
    # 2. counters table
    # ==========================================================================
    op.create_table(
        "counters",
        sa.Column("name", sa.String(64), primary_key=True),
        sa.Column("seq", sa.BigInteger, nullable=False, server_default="0"),
    )

    # ==========================================================================
    # 3. grading_scales table
    # ==========================================================================
    op.create_table(
        "grading_scales",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("system", sa.String(16), nullable=False),
        sa.Column("max_score", sa.Float, nullable=False),
        sa.Column("pass_mark", sa.Float, nullable=False),
        sa.Column("bands", JSON_TYPE, nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("campus_id", "name", name="uq_grading_scales_campus_name"),
    )
    op.create_index("ix_grading_scales_campus_id", "grading_scales", ["campus_id"])
    op.create_index(
        "uq_grading_scales_one_default",
        "grading_scales",
        ["campus_id"],
        unique=True,
        postgresql_where=sa.text("is_default = true"),
        sqlite_where=sa.text("is_default = 1"),
    )

    # ==========================================================================
    # 4. results table
    # ==========================================================================
    op.create_table(
        "results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("reference", sa.String(20), nullable=False, unique=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("academic_year", sa.String(9), nullable=False),
        sa.Column("semester", sa.String(8), nullable=False),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("class_id", sa.String(64), nullable=False),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("teacher_id", sa.String(64), nullable=False),
        sa.Column("evaluation_type", sa.String(16), nullable=False),
        sa.Column("evaluation_title", sa.String(100), nullable=False),
        sa.Column("evaluation_key", sa.String(64), nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("max_score", sa.Float, nullable=False, server_default="20"),
        sa.Column("coefficient", sa.Float, nullable=False, server_default="1"),
        sa.Column("grading_scale_id", sa.String(36), nullable=True),
        sa.Column("normalized_score", sa.Float, nullable=False),
        sa.Column("grade_band", sa.String(32), nullable=True),
        sa.Column("is_retake_eligible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_passing", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(16), nullable=False, server_default="DRAFT"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", sa.String(64), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_by", sa.String(64), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", sa.String(64), nullable=True),
        sa.Column("verification_token", sa.String(64), nullable=True, unique=True),
        sa.Column("audit_trail", JSON_TYPE, nullable=False),
        sa.Column("period_locked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "retake_of",
            sa.String(36),
            sa.ForeignKey("results.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("dropout_risk_score", sa.Float, nullable=True),
        sa.Column("teacher_remarks", sa.Text, nullable=True),
        sa.Column("class_manager_remarks", sa.Text, nullable=True),
        sa.Column("class_manager_id", sa.String(64), nullable=True),
        sa.Column("strengths", sa.Text, nullable=True),
        sa.Column("improvements", sa.Text, nullable=True),
        sa.Column("exam_date", sa.Date, nullable=True),
        sa.Column("exam_period", sa.String(16), nullable=True),
        sa.Column("exam_attendance", sa.String(16), nullable=False, server_default="present"),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'PUBLISHED', 'ARCHIVED')",
            name="valid_result_status",
        ),
        sa.CheckConstraint("score >= 0 AND score <= max_score", name="score_within_max"),
    )
    op.create_index("ix_results_campus_id", "results", ["campus_id"])
    op.create_index("ix_results_campus_period", "results", ["campus_id", "academic_year", "semester"])
    op.create_index("ix_results_class_evaluation", "results", ["class_id", "subject_id", "evaluation_title"])
    op.create_index("ix_results_student", "results", ["student_id", "academic_year"])
    op.create_index(
        "uq_results_evaluation_key_live",
        "results",
        ["evaluation_key"],
        unique=True,
        postgresql_where=sa.text("is_deleted = false"),
        sqlite_where=sa.text("is_deleted = 0"),
    )

    # ==========================================================================
    # 5. final_transcripts table
    # ==========================================================================
    op.create_table(
        "final_transcripts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("campus_id", sa.String(64), nullable=False),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("class_id", sa.String(64), nullable=True),
        sa.Column("academic_year", sa.String(9), nullable=False),
        sa.Column("semester", sa.String(8), nullable=False),
        sa.Column("subjects", JSON_TYPE, nullable=False),
        sa.Column("general_average", sa.Float, nullable=True),
        sa.Column("total_coefficients", sa.Float, nullable=False, server_default="0"),
        sa.Column("class_rank", sa.Integer, nullable=True),
        sa.Column("class_total", sa.Integer, nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="DRAFT"),
        sa.Column("decision", sa.String(16), nullable=False),
        sa.Column("general_appreciation", sa.Text, nullable=True),
        sa.Column("verification_token", sa.String(64), nullable=True, unique=True),
        sa.Column("generated_by", sa.String(64), nullable=False),
        sa.Column("validated_by", sa.String(64), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "campus_id",
            "student_id",
            "academic_year",
            "semester",
            name="uq_final_transcripts_student_period",
        ),
    )
    op.create_index("ix_final_transcripts_campus_id", "final_transcripts", ["campus_id"])


def downgrade() -> None:
    """Drop result engine tables."""
    op.drop_table("final_transcripts")
    op.drop_index("uq_results_evaluation_key_live", table_name="results")
    op.drop_table("results")
    op.drop_index("uq_grading_scales_one_default", table_name="grading_scales")
    op.drop_table("grading_scales")
    op.drop_table("counters")
    op.drop_table("class_enrollments")
    op.drop_table("school_classes")
    op.drop_table("subjects")
    op.drop_table("teachers")
    op.drop_table("students")
