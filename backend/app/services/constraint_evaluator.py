"""Legality and desirability of placing one subject block in a class grid.

Every function here is pure: it reads the class schedule, the faculty ledger
and the template guidelines and never mutates them.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.schemas.template import Guidelines
from app.services.faculty_ledger import FacultyLedger
from app.services.slot_grid import ClassSchedule

CONSECUTIVE_FACULTY_PENALTY = 1.0
FIRST_PERIOD_LAB_PENALTY = 5.0
PREFERRED_LAB_DAY_REWARD = -2.0
SPORTS_PERIOD_REWARD = -10.0


@dataclass(frozen=True)
class PlacementRequest:
    request_id: int
    assignment_index: int
    session_index: int
    subject_id: str
    faculty_id: str
    is_lab: bool
    is_sports: bool
    block_size: int


@dataclass(frozen=True)
class Violation:
    code: str
    message: str


@dataclass(frozen=True)
class PlacementVerdict:
    legal: bool
    score: float
    violations: tuple[Violation, ...] = ()


@dataclass(frozen=True)
class EvaluationContext:
    class_id: str
    schedule: ClassSchedule
    ledger: FacultyLedger
    guidelines: Guidelines


def sports_reserved_period(context: EvaluationContext, day: str) -> int | None:
    if context.guidelines.sports_last_period_predefined_day != day:
        return None
    return context.schedule.last_teaching_period(day)


def hard_violations(context: EvaluationContext, request: PlacementRequest, day: str, period: int) -> list[Violation]:
    schedule = context.schedule
    guidelines = context.guidelines
    if day not in schedule.days:
        return [Violation("unknown_day", f"{day} is not a working day")]
    last_period = period + request.block_size - 1
    if period < 1 or last_period > schedule.periods_in_day(day):
        return [
            Violation(
                "out_of_range",
                f"periods {period}-{last_period} fall outside 1..{schedule.periods_in_day(day)} on {day}",
            )
        ]

    violations: list[Violation] = []
    sports_period = sports_reserved_period(context, day)
    block = range(period, last_period + 1)
    for target in block:
        slot = schedule.slot(day, target)
        if guidelines.lunch_break_period is not None and target == guidelines.lunch_break_period:
            violations.append(Violation("lunch_period", f"period {target} is the lunch break"))
        elif slot.is_break:
            if target == period:
                violations.append(Violation("break_period", f"{day} period {target} is a break"))
            else:
                violations.append(
                    Violation("lab_contiguity", f"block from period {period} crosses the break at period {target}")
                )
        elif slot.is_occupied:
            if target == period:
                violations.append(Violation("slot_occupied", f"{day} period {target} is already taken"))
            else:
                violations.append(
                    Violation("lab_contiguity", f"block from period {period} runs into period {target}, which is taken")
                )
        if sports_period is not None and target == sports_period and not request.is_sports:
            violations.append(
                Violation("sports_period_reserved", f"{day} period {target} is reserved for sports")
            )

    for target in block:
        holder = context.ledger.holder(request.faculty_id, day, target)
        if holder is not None and holder != context.class_id:
            violations.append(
                Violation(
                    "faculty_busy",
                    f"faculty {request.faculty_id} teaches class {holder} on {day} period {target}",
                )
            )
            break

    day_slots = schedule.days[day]
    if any(slot.subject_id == request.subject_id for slot in day_slots):
        violations.append(
            Violation("subject_repeat_day", f"subject {request.subject_id} is already scheduled on {day}")
        )

    if request.is_lab and guidelines.labs_once_a_week:
        for other_day, slots in schedule.days.items():
            if other_day == day:
                continue
            if any(slot.subject_id == request.subject_id for slot in slots):
                violations.append(
                    Violation("lab_once_a_week", f"lab {request.subject_id} already runs on {other_day}")
                )
                break

    limit = guidelines.max_periods_per_faculty_per_day
    if limit is not None:
        booked = sum(1 for slot in day_slots if slot.faculty_id == request.faculty_id)
        if booked + request.block_size > limit:
            violations.append(
                Violation(
                    "faculty_day_limit",
                    f"faculty {request.faculty_id} already has {booked} of {limit} periods on {day}",
                )
            )
    return violations


def soft_score(context: EvaluationContext, request: PlacementRequest, day: str, period: int) -> float:
    schedule = context.schedule
    guidelines = context.guidelines
    score = 0.0
    if guidelines.minimize_consecutive_faculty_periods:
        for neighbour in (period - 1, period + request.block_size):
            slot = schedule.slot(day, neighbour)
            if slot is not None and slot.faculty_id == request.faculty_id:
                score += CONSECUTIVE_FACULTY_PENALTY
    if request.is_lab:
        if guidelines.avoid_first_period_labs and period == 1:
            score += FIRST_PERIOD_LAB_PENALTY
        if day in guidelines.preferred_lab_days:
            score += PREFERRED_LAB_DAY_REWARD
    if request.is_sports and sports_reserved_period(context, day) == period:
        score += SPORTS_PERIOD_REWARD
    return score


def evaluate_placement(
    context: EvaluationContext,
    request: PlacementRequest,
    day: str,
    period: int,
) -> PlacementVerdict:
    violations = hard_violations(context, request, day, period)
    if violations:
        return PlacementVerdict(legal=False, score=float("inf"), violations=tuple(violations))
    return PlacementVerdict(legal=True, score=soft_score(context, request, day, period))
