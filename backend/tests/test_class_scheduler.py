from collections import Counter

import pytest

from app.core.exceptions import (
    InvalidAssignmentError,
    SchedulerError,
    SchedulingInfeasibleError,
    SchedulingTimeoutError,
)
from app.schemas.template import Guidelines, PeriodTiming, TemplateConfig
from app.services.class_scheduler import Assignment, ClassScheduler
from app.services.faculty_ledger import FacultyLedger
from app.services.slot_grid import build_empty_grid


def make_template(periods=4, days=("monday", "tuesday"), timings=None, **guideline_values):
    return TemplateConfig(
        periods_per_day=periods,
        working_days=list(days),
        period_timings=timings or [],
        guidelines=Guidelines(**guideline_values),
    )


def run_scheduler(template, assignments, ledger=None, **kwargs):
    scheduler = ClassScheduler(
        class_id=kwargs.pop("class_id", "class-a"),
        template=template,
        assignments=assignments,
        ledger=ledger if ledger is not None else FacultyLedger(),
        **kwargs,
    )
    return scheduler.run()


def placed_subjects(schedule):
    return Counter(slot.subject_id for slot in schedule.occupied_slots())


def test_four_single_period_subjects_fill_distinct_slots():
    assignments = [Assignment(faculty_id="fx", subject_id=f"subject-{index}") for index in range(4)]
    ledger = FacultyLedger()

    outcome = run_scheduler(make_template(), assignments, ledger)

    assert placed_subjects(outcome.schedule) == {f"subject-{index}": 1 for index in range(4)}
    positions = [(slot.day, slot.period) for slot in outcome.schedule.occupied_slots()]
    assert len(set(positions)) == 4
    assert sorted(ledger.entries_for("fx")) == sorted(("fx", day, period, "class-a") for day, period in positions)


def test_lab_is_never_started_in_the_first_period_when_avoided():
    template = make_template(avoid_first_period_labs=True)
    assignments = [
        Assignment(faculty_id="f1", subject_id="chem-lab", is_lab=True, periods_needed=2),
        Assignment(faculty_id="f2", subject_id="math"),
    ]

    outcome = run_scheduler(template, assignments)

    lab_slots = sorted(
        (slot.day, slot.period) for slot in outcome.schedule.occupied_slots() if slot.subject_id == "chem-lab"
    )
    assert len(lab_slots) == 2
    assert lab_slots[0][0] == lab_slots[1][0]
    assert lab_slots[1][1] == lab_slots[0][1] + 1
    assert lab_slots[0][1] != 1


def test_faculty_day_limit_makes_the_class_infeasible():
    template = make_template(periods=3, days=("monday",), max_periods_per_faculty_per_day=2)
    assignments = [Assignment(faculty_id="faculty-z", subject_id=name) for name in ("algebra", "geometry", "calculus")]
    ledger = FacultyLedger()

    with pytest.raises(SchedulingInfeasibleError) as exc_info:
        run_scheduler(template, assignments, ledger)

    error = exc_info.value
    assert error.reason_code == "infeasible"
    assert error.details["faculty_id"] == "faculty-z"
    assert error.details["constraints"][0] == "faculty_day_limit"
    assert "faculty-z" in error.message
    assert "faculty_day_limit" in error.message
    assert len(ledger) == 0


def test_lab_block_never_crosses_a_break():
    timings = [PeriodTiming(name="Break", period=3, is_break=True)]
    template = make_template(periods=5, days=("monday",), timings=timings)
    outcome = run_scheduler(
        template,
        [Assignment(faculty_id="f1", subject_id="physics-lab", is_lab=True, periods_needed=2)],
    )

    periods = sorted(slot.period for slot in outcome.schedule.occupied_slots())
    assert periods in ([1, 2], [4, 5])
    assert not outcome.schedule.slot("monday", 3).is_occupied


def test_weekly_sessions_land_on_different_days():
    template = make_template(days=("monday", "tuesday", "wednesday"))
    outcome = run_scheduler(template, [Assignment(faculty_id="f1", subject_id="math", weekly_sessions=3)])

    days = sorted(slot.day for slot in outcome.schedule.occupied_slots())
    assert days == ["monday", "tuesday", "wednesday"]
    assert len(outcome.placements) == 3


def test_busy_faculty_is_placed_elsewhere():
    ledger = FacultyLedger()
    for period in range(1, 5):
        ledger.reserve("fy", "monday", period, "class-b")

    outcome = run_scheduler(make_template(), [Assignment(faculty_id="fy", subject_id="history")], ledger)

    [slot] = list(outcome.schedule.occupied_slots())
    assert slot.day == "tuesday"
    assert ledger.holder("fy", "tuesday", slot.period) == "class-a"


def test_failed_run_releases_its_reservations():
    ledger = FacultyLedger()
    ledger.reserve("f1", "monday", 1, "class-b")
    before = ledger.snapshot()
    assignments = [
        Assignment(faculty_id="f1", subject_id="math"),
        Assignment(faculty_id="f1", subject_id="english", is_lab=True, periods_needed=5),
    ]

    with pytest.raises(SchedulingInfeasibleError):
        run_scheduler(make_template(), assignments, ledger)

    assert ledger.snapshot() == before


def test_attempt_ceiling_raises_timeout_and_rolls_back():
    ledger = FacultyLedger()
    assignments = [Assignment(faculty_id="f1", subject_id="math"), Assignment(faculty_id="f2", subject_id="art")]

    with pytest.raises(SchedulingTimeoutError) as exc_info:
        run_scheduler(make_template(), assignments, ledger, max_attempts=1)

    assert exc_info.value.details["max_attempts"] == 1
    assert len(ledger) == 0


def test_locked_slots_are_kept_and_count_as_sessions():
    template = make_template(days=("monday", "tuesday", "wednesday"))
    previous = build_empty_grid(template)
    previous.place(day="tuesday", start_period=2, length=1, subject_id="math", faculty_id="f1", is_lab=False)
    previous.slot("tuesday", 2).is_locked = True
    ledger = FacultyLedger()

    outcome = run_scheduler(
        template,
        [Assignment(faculty_id="f1", subject_id="math", weekly_sessions=2)],
        ledger,
        previous_schedule=previous,
    )

    math_slots = [slot for slot in outcome.schedule.occupied_slots() if slot.subject_id == "math"]
    assert len(math_slots) == 2
    locked = outcome.schedule.slot("tuesday", 2)
    assert locked.is_locked and locked.subject_id == "math"
    assert {slot.day for slot in math_slots} != {"tuesday"}
    assert ledger.holder("f1", "tuesday", 2) == "class-a"


def test_locked_lab_block_counts_as_the_lab_session():
    template = make_template()
    previous = build_empty_grid(template)
    previous.place(day="monday", start_period=2, length=2, subject_id="chem-lab", faculty_id="f1", is_lab=True)
    previous.slot("monday", 2).is_locked = True
    previous.slot("monday", 3).is_locked = True

    outcome = run_scheduler(
        template,
        [Assignment(faculty_id="f1", subject_id="chem-lab", is_lab=True, periods_needed=2)],
        previous_schedule=previous,
    )

    lab_slots = [(slot.day, slot.period) for slot in outcome.schedule.occupied_slots()]
    assert lab_slots == [("monday", 2), ("monday", 3)]
    assert outcome.placements == []


def test_partially_locked_lab_block_is_rejected():
    template = make_template()
    previous = build_empty_grid(template)
    previous.place(day="monday", start_period=2, length=1, subject_id="chem-lab", faculty_id="f1", is_lab=True)
    previous.slot("monday", 2).is_locked = True
    ledger = FacultyLedger()

    with pytest.raises(InvalidAssignmentError) as exc_info:
        run_scheduler(
            template,
            [Assignment(faculty_id="f1", subject_id="chem-lab", is_lab=True, periods_needed=2)],
            ledger,
            previous_schedule=previous,
        )

    assert exc_info.value.details["locked_periods"] == [2]
    assert exc_info.value.details["periods_needed"] == 2
    assert len(ledger) == 0


def test_sports_subject_takes_the_reserved_period():
    template = make_template(periods=4, days=("monday", "friday"), sports_last_period_predefined_day="friday")
    assignments = [
        Assignment(faculty_id="coach", subject_id="games", is_sports=True),
        Assignment(faculty_id="f1", subject_id="math", weekly_sessions=2),
    ]

    outcome = run_scheduler(template, assignments)

    assert outcome.schedule.slot("friday", 4).subject_id == "games"


def test_runs_are_deterministic():
    template = make_template(periods=6, days=("monday", "tuesday", "wednesday"), preferred_lab_days=["wednesday"])
    assignments = [
        Assignment(faculty_id="f1", subject_id="math", weekly_sessions=3),
        Assignment(faculty_id="f2", subject_id="bio-lab", is_lab=True, periods_needed=2),
        Assignment(faculty_id="f1", subject_id="stats", weekly_sessions=2),
        Assignment(faculty_id="f3", subject_id="english", weekly_sessions=3),
    ]

    first = run_scheduler(template, assignments)
    second = run_scheduler(template, assignments)

    assert first.schedule == second.schedule
    assert first.placements == second.placements
    assert first.attempts == second.attempts


def test_empty_assignment_list_is_rejected():
    with pytest.raises(InvalidAssignmentError):
        run_scheduler(make_template(), [])


def test_non_positive_attempt_ceiling_is_rejected():
    with pytest.raises(SchedulerError):
        ClassScheduler(
            class_id="class-a",
            template=make_template(),
            assignments=[Assignment(faculty_id="f1", subject_id="math")],
            ledger=FacultyLedger(),
            max_attempts=0,
        )
