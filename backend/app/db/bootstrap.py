from __future__ import annotations

import logging

from sqlalchemy import inspect, text

from app.db.base import Base
from app.db.session import engine
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "classes": {"id", "name", "created_at"},
    "subjects": {"id", "name", "is_lab", "is_sports", "default_duration_periods"},
    "faculty": {"id", "name", "employee_code"},
    "timetables": {"id", "class_id", "academic_year", "schedule", "guidelines"},
    "class_assignments": {"id", "timetable_id", "subject_id", "faculty_id", "weekly_sessions", "position"},
}


def _ensure_subject_sports_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "subjects" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("subjects")}
        if "is_sports" in column_names:
            return
        connection.execute(text("ALTER TABLE subjects ADD COLUMN is_sports BOOLEAN NOT NULL DEFAULT FALSE"))
        # Databases created before the flag existed marked sports by name only.
        connection.execute(text("UPDATE subjects SET is_sports = TRUE WHERE LOWER(name) LIKE '%sport%'"))


def _ensure_assignment_session_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "class_assignments" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("class_assignments")}
        if "weekly_sessions" not in column_names:
            connection.execute(
                text("ALTER TABLE class_assignments ADD COLUMN weekly_sessions INTEGER NOT NULL DEFAULT 1")
            )
        if "position" not in column_names:
            connection.execute(
                text("ALTER TABLE class_assignments ADD COLUMN position INTEGER NOT NULL DEFAULT 0")
            )


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_subject_sports_column()
        _ensure_assignment_session_columns()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
