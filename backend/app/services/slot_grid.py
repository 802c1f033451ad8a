from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterator, Mapping

from app.core.exceptions import InvalidTemplateError
from app.schemas.template import TemplateConfig
from app.schemas.timetable import SlotPayload


@dataclass
class Slot:
    day: str
    period: int
    subject_id: str | None = None
    faculty_id: str | None = None
    is_lab: bool = False
    is_break: bool = False
    is_locked: bool = False

    @property
    def is_occupied(self) -> bool:
        return self.subject_id is not None

    def fill(self, *, subject_id: str, faculty_id: str, is_lab: bool, is_locked: bool = False) -> None:
        self.subject_id = subject_id
        self.faculty_id = faculty_id
        self.is_lab = is_lab
        self.is_locked = is_locked

    def clear(self) -> None:
        self.subject_id = None
        self.faculty_id = None
        self.is_lab = False
        self.is_locked = False


class ClassSchedule:
    """Weekly grid of one class: working day -> slots ordered by period."""

    def __init__(self, days: dict[str, list[Slot]]) -> None:
        self.days = days

    @property
    def working_days(self) -> list[str]:
        return list(self.days)

    def day_index(self, day: str) -> int:
        return self.working_days.index(day)

    def periods_in_day(self, day: str) -> int:
        return len(self.days.get(day, []))

    def slot(self, day: str, period: int) -> Slot | None:
        slots = self.days.get(day)
        if slots is None or period < 1 or period > len(slots):
            return None
        return slots[period - 1]

    def is_break(self, day: str, period: int) -> bool:
        slot = self.slot(day, period)
        return slot is not None and slot.is_break

    def available_periods(self, day: str) -> list[int]:
        return [slot.period for slot in self.days.get(day, []) if not slot.is_break]

    def free_periods(self, day: str) -> list[int]:
        return [slot.period for slot in self.days.get(day, []) if not slot.is_break and not slot.is_occupied]

    def last_teaching_period(self, day: str) -> int | None:
        periods = self.available_periods(day)
        return periods[-1] if periods else None

    def occupied_slots(self) -> Iterator[Slot]:
        for slots in self.days.values():
            for slot in slots:
                if slot.is_occupied:
                    yield slot

    def locked_slots(self) -> list[Slot]:
        return [slot for slot in self.occupied_slots() if slot.is_locked]

    def place(
        self,
        *,
        day: str,
        start_period: int,
        length: int,
        subject_id: str,
        faculty_id: str,
        is_lab: bool,
    ) -> None:
        for period in range(start_period, start_period + length):
            self.days[day][period - 1].fill(subject_id=subject_id, faculty_id=faculty_id, is_lab=is_lab)

    def clear_block(self, *, day: str, start_period: int, length: int) -> None:
        for period in range(start_period, start_period + length):
            slot = self.days[day][period - 1]
            if not slot.is_locked:
                slot.clear()

    def copy(self) -> "ClassSchedule":
        return ClassSchedule({day: [Slot(**asdict(slot)) for slot in slots] for day, slots in self.days.items()})

    def to_payload(self) -> dict[str, list[dict]]:
        return {day: [asdict(slot) for slot in slots] for day, slots in self.days.items()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, list]) -> "ClassSchedule":
        days: dict[str, list[Slot]] = {}
        for day, entries in (payload or {}).items():
            slots = [Slot(**SlotPayload.model_validate(entry).model_dump()) for entry in entries]
            days[day] = sorted(slots, key=lambda item: item.period)
        return cls(days)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassSchedule):
            return NotImplemented
        return self.to_payload() == other.to_payload()


def break_periods(template: TemplateConfig) -> set[int]:
    periods: set[int] = set()
    for position, timing in enumerate(template.period_timings, start=1):
        if timing.is_break:
            periods.add(timing.period or position)
    lunch = template.guidelines.lunch_break_period
    if lunch is not None:
        periods.add(lunch)
    return periods


def validate_template(template: TemplateConfig) -> None:
    if template.periods_per_day <= 0:
        raise InvalidTemplateError(
            f"periods_per_day must be at least 1 (got {template.periods_per_day})",
            details={"field": "periods_per_day"},
        )
    if not template.working_days:
        raise InvalidTemplateError("Template has no working days", details={"field": "working_days"})
    duplicates = sorted({day for day in template.working_days if template.working_days.count(day) > 1})
    if duplicates:
        raise InvalidTemplateError(
            f"Duplicate working days: {', '.join(duplicates)}",
            details={"field": "working_days", "duplicates": duplicates},
        )
    for position, timing in enumerate(template.period_timings, start=1):
        index = timing.period or position
        if index < 1 or index > template.periods_per_day:
            raise InvalidTemplateError(
                f"Period timing '{timing.name}' references period {index} outside 1..{template.periods_per_day}",
                details={"field": "period_timings", "period": index},
            )
    lunch = template.guidelines.lunch_break_period
    if lunch is not None and lunch > template.periods_per_day:
        raise InvalidTemplateError(
            f"lunch_break_period {lunch} is outside 1..{template.periods_per_day}",
            details={"field": "lunch_break_period", "period": lunch},
        )


def build_empty_grid(template: TemplateConfig) -> ClassSchedule:
    validate_template(template)
    breaks = break_periods(template)
    return ClassSchedule(
        {
            day: [
                Slot(day=day, period=period, is_break=period in breaks)
                for period in range(1, template.periods_per_day + 1)
            ]
            for day in template.working_days
        }
    )


def carry_locked_slots(grid: ClassSchedule, previous: ClassSchedule | None) -> list[Slot]:
    """Copy locked occupants of ``previous`` into ``grid`` and return the copied slots."""
    if previous is None:
        return []
    carried: list[Slot] = []
    for locked in previous.locked_slots():
        target = grid.slot(locked.day, locked.period)
        if target is None or target.is_break:
            raise InvalidTemplateError(
                f"Locked slot {locked.day}/{locked.period} does not fit the current template",
                details={"day": locked.day, "period": locked.period, "subject_id": locked.subject_id},
            )
        target.fill(
            subject_id=locked.subject_id,
            faculty_id=locked.faculty_id,
            is_lab=locked.is_lab,
            is_locked=True,
        )
        carried.append(target)
    return carried
