"""create timetable engine tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    generation_scope = sa.Enum("single", "all", name="generation_scope")

    op.create_table(
        "faculty",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("employee_code", sa.String(length=50), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False, server_default="General"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_faculty_employee_code", "faculty", ["employee_code"], unique=True)

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=True),
        sa.Column("is_lab", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_sports", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("default_duration_periods", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_subjects_name", "subjects", ["name"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("branch", sa.String(length=50), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("class_teacher_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_classes_name", "classes", ["name"], unique=True)

    op.create_table(
        "timetable_templates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("periods_per_day", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("period_timings", sa.JSON(), nullable=False),
        sa.Column("guidelines", sa.JSON(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("academic_year", sa.String(length=20), nullable=False),
        sa.Column("template_id", sa.String(length=36), nullable=True),
        sa.Column("periods_per_day", sa.Integer(), nullable=False),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("period_timings", sa.JSON(), nullable=False),
        sa.Column("guidelines", sa.JSON(), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_generated", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("class_id", "academic_year", name="uq_timetables_class_year"),
    )
    op.create_index("ix_timetables_class_id", "timetables", ["class_id"])
    op.create_index("ix_timetables_academic_year", "timetables", ["academic_year"])

    op.create_table(
        "class_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("weekly_sessions", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("timetable_id", "subject_id", "faculty_id", name="uq_class_assignments_identity"),
    )
    op.create_index("ix_class_assignments_timetable_id", "class_assignments", ["timetable_id"])

    op.create_table(
        "timetable_generation_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="20000"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "timetable_generation_runs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("scope", generation_scope, nullable=False),
        sa.Column("academic_year", sa.String(length=20), nullable=False),
        sa.Column("committed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("runtime_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("results", sa.JSON(), nullable=False),
        sa.Column("triggered_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_timetable_generation_runs_scope", "timetable_generation_runs", ["scope"])
    op.create_index("ix_timetable_generation_runs_academic_year", "timetable_generation_runs", ["academic_year"])


def downgrade() -> None:
    op.drop_index("ix_timetable_generation_runs_academic_year", table_name="timetable_generation_runs")
    op.drop_index("ix_timetable_generation_runs_scope", table_name="timetable_generation_runs")
    op.drop_table("timetable_generation_runs")
    op.drop_table("timetable_generation_settings")
    op.drop_index("ix_class_assignments_timetable_id", table_name="class_assignments")
    op.drop_table("class_assignments")
    op.drop_index("ix_timetables_academic_year", table_name="timetables")
    op.drop_index("ix_timetables_class_id", table_name="timetables")
    op.drop_table("timetables")
    op.drop_table("timetable_templates")
    op.drop_index("ix_classes_name", table_name="classes")
    op.drop_table("classes")
    op.drop_index("ix_subjects_name", table_name="subjects")
    op.drop_table("subjects")
    op.drop_index("ix_faculty_employee_code", table_name="faculty")
    op.drop_table("faculty")
    sa.Enum(name="generation_scope").drop(op.get_bind(), checkfirst=True)
