from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import InvalidAssignmentError, InvalidTemplateError, ResourceNotFoundError
from app.models.faculty import Faculty
from app.models.school_class import SchoolClass
from app.models.subject import Subject
from app.models.timetable import ClassAssignment, Timetable
from app.schemas.template import TemplateConfig
from app.services.slot_grid import build_empty_grid
from app.services.timetable_store import SqlTimetableStore

YEAR = "2025-2026"


def seed_class(db, name, created_at, **timetable_values):
    item = SchoolClass(name=name, branch="CSE", created_at=created_at)
    db.add(item)
    db.flush()
    values = {
        "periods_per_day": 4,
        "working_days": ["monday", "tuesday"],
        "period_timings": [],
        "guidelines": {},
        "schedule": {},
    }
    values.update(timetable_values)
    timetable = Timetable(class_id=item.id, academic_year=YEAR, **values)
    db.add(timetable)
    db.flush()
    return item, timetable


def test_refs_follow_class_creation_order(db_session):
    now = datetime.now(timezone.utc)
    late, _ = seed_class(db_session, "B-late", now)
    early, _ = seed_class(db_session, "A-early", now - timedelta(days=1))
    tie_z, _ = seed_class(db_session, "Z-tie", now + timedelta(days=1))
    tie_m, _ = seed_class(db_session, "M-tie", now + timedelta(days=1))
    db_session.commit()

    refs = SqlTimetableStore(db_session).list_refs(YEAR)

    assert [ref.class_id for ref in refs] == [early.id, late.id, tie_m.id, tie_z.id]
    assert SqlTimetableStore(db_session).list_refs("1999-2000") == []


def test_load_job_builds_assignments_from_subjects(db_session):
    _, timetable = seed_class(db_session, "CSE-A", datetime.now(timezone.utc))
    lab = Subject(name="Networks Lab", is_lab=True, default_duration_periods=2)
    games = Subject(name="Games", is_sports=True)
    teacher = Faculty(name="Dr. Rao", employee_code="E100")
    db_session.add_all([lab, games, teacher])
    db_session.flush()
    db_session.add_all(
        [
            ClassAssignment(timetable_id=timetable.id, subject_id=games.id, faculty_id=teacher.id, position=1),
            ClassAssignment(
                timetable_id=timetable.id, subject_id=lab.id, faculty_id=teacher.id, weekly_sessions=1, position=0
            ),
        ]
    )
    db_session.commit()

    job = SqlTimetableStore(db_session).load_job(timetable.class_id, YEAR)

    assert job.timetable_id == timetable.id
    assert job.template.periods_per_day == 4
    assert job.schedule is None
    assert [item.subject_id for item in job.assignments] == [lab.id, games.id]
    assert job.assignments[0].is_lab and job.assignments[0].periods_needed == 2
    assert job.assignments[1].is_sports


def test_load_job_for_unknown_class_raises(db_session):
    with pytest.raises(ResourceNotFoundError):
        SqlTimetableStore(db_session).load_job("missing", YEAR)


def test_assignment_with_deleted_subject_is_rejected(db_session):
    _, timetable = seed_class(db_session, "CSE-B", datetime.now(timezone.utc))
    teacher = Faculty(name="Dr. Iyer", employee_code="E200")
    db_session.add(teacher)
    db_session.flush()
    db_session.add(ClassAssignment(timetable_id=timetable.id, subject_id="gone", faculty_id=teacher.id))
    db_session.commit()

    with pytest.raises(InvalidAssignmentError):
        SqlTimetableStore(db_session).load_job(timetable.class_id, YEAR)


def test_unreadable_template_is_reported(db_session):
    _, timetable = seed_class(db_session, "CSE-C", datetime.now(timezone.utc), working_days=["funday"])
    db_session.commit()

    with pytest.raises(InvalidTemplateError):
        SqlTimetableStore(db_session).load_job(timetable.class_id, YEAR)


def test_commit_and_committed_schedules(db_session):
    _, timetable = seed_class(db_session, "CSE-D", datetime.now(timezone.utc))
    seed_class(db_session, "CSE-E", datetime.now(timezone.utc))
    db_session.commit()
    store = SqlTimetableStore(db_session)
    job = store.load_job(timetable.class_id, YEAR)

    schedule = build_empty_grid(TemplateConfig(periods_per_day=4, working_days=["monday", "tuesday"]))
    schedule.place(day="monday", start_period=1, length=1, subject_id="s1", faculty_id="f1", is_lab=False)
    store.commit(job, schedule)

    committed = store.committed_schedules(YEAR)
    assert list(committed) == [timetable.class_id]
    assert committed[timetable.class_id] == schedule
    db_session.refresh(timetable)
    assert timetable.last_generated is not None


def test_failed_commit_rolls_the_session_back(db_session, monkeypatch):
    _, timetable = seed_class(db_session, "CSE-F", datetime.now(timezone.utc))
    db_session.commit()
    store = SqlTimetableStore(db_session)
    job = store.load_job(timetable.class_id, YEAR)
    schedule = build_empty_grid(TemplateConfig(periods_per_day=4, working_days=["monday", "tuesday"]))
    schedule.place(day="monday", start_period=1, length=1, subject_id="s1", faculty_id="f1", is_lab=False)
    rollbacks = []

    def failing_commit():
        raise RuntimeError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)
    monkeypatch.setattr(db_session, "rollback", lambda: rollbacks.append(True))

    with pytest.raises(RuntimeError):
        store.commit(job, schedule)

    assert rollbacks == [True]
