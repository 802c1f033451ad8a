import pytest

from app.core.exceptions import InvalidTemplateError
from app.schemas.template import Guidelines, PeriodTiming, TemplateConfig
from app.services.slot_grid import ClassSchedule, build_empty_grid, carry_locked_slots


def make_template(**overrides) -> TemplateConfig:
    values = {
        "periods_per_day": 6,
        "working_days": ["monday", "tuesday", "wednesday"],
    }
    values.update(overrides)
    return TemplateConfig(**values)


def test_empty_grid_has_every_day_and_period():
    grid = build_empty_grid(make_template())

    assert grid.working_days == ["monday", "tuesday", "wednesday"]
    for day in grid.working_days:
        assert [slot.period for slot in grid.days[day]] == [1, 2, 3, 4, 5, 6]
        assert all(not slot.is_occupied and not slot.is_locked for slot in grid.days[day])


def test_breaks_come_from_timings_and_lunch_period():
    template = make_template(
        period_timings=[
            PeriodTiming(name="Tea", period=3, start_time="10:30", end_time="10:45", is_break=True),
        ],
        guidelines=Guidelines(lunch_break_period=5),
    )
    grid = build_empty_grid(template)

    assert grid.is_break("tuesday", 3)
    assert grid.is_break("tuesday", 5)
    assert grid.available_periods("tuesday") == [1, 2, 4, 6]
    assert grid.last_teaching_period("tuesday") == 6


def test_timing_without_period_uses_its_position():
    template = make_template(
        periods_per_day=3,
        period_timings=[
            PeriodTiming(name="P1", start_time="09:00", end_time="09:50"),
            PeriodTiming(name="Break", start_time="09:50", end_time="10:05", is_break=True),
            PeriodTiming(name="P3", start_time="10:05", end_time="10:55"),
        ],
    )
    grid = build_empty_grid(template)

    assert grid.is_break("monday", 2)
    assert not grid.is_break("monday", 1)


@pytest.mark.parametrize("periods", [0, -2])
def test_non_positive_periods_are_rejected(periods):
    with pytest.raises(InvalidTemplateError):
        build_empty_grid(make_template(periods_per_day=periods))


def test_duplicate_days_are_rejected():
    with pytest.raises(InvalidTemplateError) as exc_info:
        build_empty_grid(make_template(working_days=["monday", " Monday"]))

    assert exc_info.value.details["duplicates"] == ["monday"]


def test_empty_working_days_are_rejected():
    with pytest.raises(InvalidTemplateError):
        build_empty_grid(make_template(working_days=[]))


def test_timing_beyond_the_day_is_rejected():
    template = make_template(
        periods_per_day=4,
        period_timings=[PeriodTiming(name="Late", period=7, start_time="15:00", end_time="15:30", is_break=True)],
    )
    with pytest.raises(InvalidTemplateError):
        build_empty_grid(template)


def test_place_and_clear_block_leave_locked_slots_alone():
    grid = build_empty_grid(make_template())
    grid.place(day="monday", start_period=2, length=2, subject_id="lab", faculty_id="f1", is_lab=True)
    grid.days["monday"][2].is_locked = True

    grid.clear_block(day="monday", start_period=2, length=2)

    assert not grid.slot("monday", 2).is_occupied
    assert grid.slot("monday", 3).subject_id == "lab"
    assert grid.free_periods("monday") == [1, 2, 4, 5, 6]


def test_payload_keeps_slot_flags():
    grid = build_empty_grid(make_template(guidelines=Guidelines(lunch_break_period=4)))
    grid.place(day="wednesday", start_period=1, length=1, subject_id="math", faculty_id="f1", is_lab=False)

    restored = ClassSchedule.from_payload(grid.to_payload())

    assert restored == grid
    assert restored.slot("wednesday", 4).is_break
    assert restored.slot("wednesday", 1).faculty_id == "f1"


def test_carry_locked_slots_copies_only_locked_occupants():
    template = make_template()
    previous = build_empty_grid(template)
    previous.place(day="monday", start_period=1, length=1, subject_id="math", faculty_id="f1", is_lab=False)
    previous.place(day="tuesday", start_period=2, length=1, subject_id="art", faculty_id="f2", is_lab=False)
    previous.slot("monday", 1).is_locked = True

    grid = build_empty_grid(template)
    carried = carry_locked_slots(grid, previous)

    assert [(slot.day, slot.period) for slot in carried] == [("monday", 1)]
    assert grid.slot("monday", 1).is_locked
    assert not grid.slot("tuesday", 2).is_occupied


def test_locked_slot_on_a_break_is_rejected():
    previous = build_empty_grid(make_template())
    previous.place(day="monday", start_period=4, length=1, subject_id="math", faculty_id="f1", is_lab=False)
    previous.slot("monday", 4).is_locked = True

    grid = build_empty_grid(make_template(guidelines=Guidelines(lunch_break_period=4)))
    with pytest.raises(InvalidTemplateError):
        carry_locked_slots(grid, previous)
