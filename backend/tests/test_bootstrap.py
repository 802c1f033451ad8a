import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_subject_sports_column", lambda: None)
    monkeypatch.setattr(bootstrap, "_ensure_assignment_session_columns", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_legacy_tables_gain_engine_columns(monkeypatch):
    engine = create_engine("sqlite+pysqlite://", poolclass=StaticPool)
    with engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE subjects (id VARCHAR(36) PRIMARY KEY, name VARCHAR(100), code VARCHAR(20), "
                "is_lab BOOLEAN NOT NULL DEFAULT 0, default_duration_periods INTEGER NOT NULL DEFAULT 1, "
                "created_at DATETIME)"
            )
        )
        connection.execute(
            text(
                "CREATE TABLE class_assignments (id VARCHAR(36) PRIMARY KEY, timetable_id VARCHAR(36), "
                "subject_id VARCHAR(36), faculty_id VARCHAR(36), created_at DATETIME)"
            )
        )
        connection.execute(text("INSERT INTO subjects (id, name) VALUES ('s1', 'Sports'), ('s2', 'Maths')"))
    monkeypatch.setattr(bootstrap, "engine", engine)

    bootstrap.ensure_runtime_schema_compatibility()

    inspector = inspect(engine)
    assignment_columns = {item["name"] for item in inspector.get_columns("class_assignments")}
    assert {"weekly_sessions", "position"} <= assignment_columns
    with engine.connect() as connection:
        rows = dict(connection.execute(text("SELECT name, is_sports FROM subjects")).all())
    assert bool(rows["Sports"]) is True
    assert bool(rows["Maths"]) is False
