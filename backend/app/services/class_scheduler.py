from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import logging
from time import perf_counter
from typing import Sequence

from app.core.exceptions import (
    InvalidAssignmentError,
    SchedulerError,
    SchedulingInfeasibleError,
    SchedulingTimeoutError,
)
from app.schemas.template import TemplateConfig
from app.services.constraint_evaluator import (
    EvaluationContext,
    PlacementRequest,
    evaluate_placement,
)
from app.services.faculty_ledger import FacultyLedger
from app.services.slot_grid import ClassSchedule, Slot, build_empty_grid, carry_locked_slots

logger = logging.getLogger(__name__)

# Codes that only say "the cell is not usable" rank after the codes that explain why.
_GENERIC_BLOCKERS = {"slot_occupied", "break_period", "lunch_period", "out_of_range"}


@dataclass(frozen=True)
class Assignment:
    faculty_id: str
    subject_id: str
    is_lab: bool = False
    periods_needed: int = 1
    weekly_sessions: int = 1
    is_sports: bool = False


@dataclass(frozen=True)
class Placement:
    request_id: int
    subject_id: str
    faculty_id: str
    day: str
    period: int
    length: int


@dataclass
class SchedulingOutcome:
    class_id: str
    schedule: ClassSchedule
    placements: list[Placement]
    attempts: int
    backtracks: int
    runtime_ms: int


@dataclass
class _DecisionPoint:
    request: PlacementRequest
    candidates: list[tuple[str, int]]
    cursor: int = 0


@dataclass
class _DeadEnd:
    request: PlacementRequest
    blocked: Counter = field(default_factory=Counter)
    messages: dict[str, str] = field(default_factory=dict)

    def constraints(self) -> list[str]:
        return sorted(
            self.blocked,
            key=lambda code: (code in _GENERIC_BLOCKERS, -self.blocked[code], code),
        )

    def describe(self) -> str:
        codes = self.constraints()
        if not codes:
            return (
                f"Could not place subject {self.request.subject_id} (faculty {self.request.faculty_id}): "
                f"no period remains after its earlier {self.request.session_index} session(s)"
            )
        reasons = "; ".join(f"{code}: {self.messages[code]}" for code in codes)
        return (
            f"Could not place subject {self.request.subject_id} (faculty {self.request.faculty_id}): "
            f"every candidate period was blocked ({reasons})"
        )

    def as_details(self) -> dict:
        return {
            "subject_id": self.request.subject_id,
            "faculty_id": self.request.faculty_id,
            "session": self.request.session_index + 1,
            "constraints": self.constraints(),
            "blocked_candidates": dict(self.blocked),
            "messages": dict(self.messages),
        }


class ClassScheduler:
    """Backtracking search that fills one class grid.

    Requests are chosen most-constrained-first (labs, then the fewest legal
    candidates) and candidates are tried in ascending soft score, then by day
    and period. Decision points live on an explicit stack so the attempt
    ceiling is a plain counter. The ledger is borrowed for the duration of
    ``run``: on success it holds this class's reservations, on failure every
    reservation made by the run is released again.
    """

    def __init__(
        self,
        *,
        class_id: str,
        template: TemplateConfig,
        assignments: Sequence[Assignment],
        ledger: FacultyLedger,
        max_attempts: int = 20_000,
        previous_schedule: ClassSchedule | None = None,
    ) -> None:
        if max_attempts < 1:
            raise SchedulerError("max_attempts must be at least 1", details={"max_attempts": max_attempts})
        self.class_id = class_id
        self.template = template
        self.assignments = list(assignments)
        self.ledger = ledger
        self.max_attempts = max_attempts
        self.previous_schedule = previous_schedule

        self.schedule: ClassSchedule | None = None
        self.requests: list[PlacementRequest] = []
        self.attempts = 0
        self.backtracks = 0
        self._placements: dict[int, tuple[str, int]] = {}
        self._locked_reservations: list[tuple[str, str, int]] = []
        self._stack: list[_DecisionPoint] = []
        self._first_dead_end: _DeadEnd | None = None

    def run(self) -> SchedulingOutcome:
        started = perf_counter()
        self.schedule = build_empty_grid(self.template)
        self._validate_assignments()
        locked = carry_locked_slots(self.schedule, self.previous_schedule)
        self._context = EvaluationContext(
            class_id=self.class_id,
            schedule=self.schedule,
            ledger=self.ledger,
            guidelines=self.template.guidelines,
        )
        try:
            self._reserve_locked(locked)
            self.requests = self._build_requests(locked)
            self._search()
        except Exception:
            self._rollback()
            raise

        runtime_ms = int((perf_counter() - started) * 1000)
        logger.debug(
            "Class %s scheduled requests=%s attempts=%s backtracks=%s runtime_ms=%s",
            self.class_id,
            len(self.requests),
            self.attempts,
            self.backtracks,
            runtime_ms,
        )
        placements = [
            Placement(
                request_id=request.request_id,
                subject_id=request.subject_id,
                faculty_id=request.faculty_id,
                day=self._placements[request.request_id][0],
                period=self._placements[request.request_id][1],
                length=request.block_size,
            )
            for request in self.requests
        ]
        return SchedulingOutcome(
            class_id=self.class_id,
            schedule=self.schedule,
            placements=placements,
            attempts=self.attempts,
            backtracks=self.backtracks,
            runtime_ms=runtime_ms,
        )

    def _validate_assignments(self) -> None:
        if not self.assignments:
            raise InvalidAssignmentError(f"Class {self.class_id} has no faculty-subject assignments")
        for index, assignment in enumerate(self.assignments):
            if assignment.periods_needed < 1 or assignment.weekly_sessions < 1:
                raise InvalidAssignmentError(
                    f"Assignment for subject {assignment.subject_id} needs at least one period and one session",
                    details={"assignment_index": index, "subject_id": assignment.subject_id},
                )

    def _reserve_locked(self, locked: list[Slot]) -> None:
        for slot in locked:
            if slot.faculty_id is None:
                continue
            if self.ledger.holder(slot.faculty_id, slot.day, slot.period) == self.class_id:
                continue
            self.ledger.reserve(slot.faculty_id, slot.day, slot.period, self.class_id)
            self._locked_reservations.append((slot.faculty_id, slot.day, slot.period))

    def _check_locked_block(self, assignment: Assignment, day: str, periods: list[int]) -> None:
        contiguous = periods[-1] - periods[0] + 1 == len(periods)
        if contiguous and len(periods) == assignment.periods_needed:
            return
        raise InvalidAssignmentError(
            f"Locked periods {periods} of subject {assignment.subject_id} on {day} do not form "
            f"one block of {assignment.periods_needed} contiguous period(s)",
            details={
                "subject_id": assignment.subject_id,
                "faculty_id": assignment.faculty_id,
                "day": day,
                "locked_periods": periods,
                "periods_needed": assignment.periods_needed,
            },
        )

    def _build_requests(self, locked: list[Slot]) -> list[PlacementRequest]:
        locked_days: dict[tuple[str, str], dict[str, list[int]]] = {}
        for slot in locked:
            by_day = locked_days.setdefault((slot.subject_id, slot.faculty_id), {})
            by_day.setdefault(slot.day, []).append(slot.period)

        requests: list[PlacementRequest] = []
        for index, assignment in enumerate(self.assignments):
            by_day = locked_days.get((assignment.subject_id, assignment.faculty_id), {})
            for day, periods in by_day.items():
                self._check_locked_block(assignment, day, sorted(periods))
            # A locked day holds exactly one full block, so it is one delivered session.
            covered = len(by_day)
            remaining = max(0, assignment.weekly_sessions - covered)
            if covered:
                logger.info(
                    "Class %s subject %s keeps %s locked session(s)",
                    self.class_id,
                    assignment.subject_id,
                    min(covered, assignment.weekly_sessions),
                )
            for session_index in range(remaining):
                requests.append(
                    PlacementRequest(
                        request_id=len(requests),
                        assignment_index=index,
                        session_index=session_index,
                        subject_id=assignment.subject_id,
                        faculty_id=assignment.faculty_id,
                        is_lab=assignment.is_lab,
                        is_sports=assignment.is_sports,
                        block_size=assignment.periods_needed,
                    )
                )
        return requests

    def _search(self) -> None:
        while len(self._placements) < len(self.requests):
            request, candidates, dead_end = self._select_next()
            if candidates:
                point = _DecisionPoint(request=request, candidates=candidates)
                self._stack.append(point)
                self._apply(point)
                continue
            if self._first_dead_end is None:
                self._first_dead_end = dead_end
            if not self._backtrack():
                dead_end = self._first_dead_end
                raise SchedulingInfeasibleError(dead_end.describe(), details=dead_end.as_details())

    def _select_next(self) -> tuple[PlacementRequest, list[tuple[str, int]], _DeadEnd | None]:
        best: tuple[tuple[int, int, int], PlacementRequest, list[tuple[str, int]]] | None = None
        for request in self._open_requests():
            candidates, dead_end = self._candidates(request)
            if not candidates:
                return request, [], dead_end
            key = (0 if request.is_lab else 1, len(candidates), request.request_id)
            if best is None or key < best[0]:
                best = (key, request, candidates)
        return best[1], best[2], None

    def _open_requests(self) -> list[PlacementRequest]:
        open_requests: list[PlacementRequest] = []
        next_session: dict[int, int] = {}
        for request in self.requests:
            if request.request_id in self._placements:
                continue
            # Sibling sessions are interchangeable, so only the earliest unplaced one is open.
            if request.assignment_index in next_session:
                continue
            next_session[request.assignment_index] = request.session_index
            open_requests.append(request)
        return open_requests

    def _lower_bound(self, request: PlacementRequest) -> tuple[int, int] | None:
        if request.session_index == 0:
            return None
        previous = self.requests[request.request_id - 1]
        day, period = self._placements[previous.request_id]
        return self.schedule.day_index(day), period

    def _candidates(self, request: PlacementRequest) -> tuple[list[tuple[str, int]], _DeadEnd]:
        lower_bound = self._lower_bound(request)
        dead_end = _DeadEnd(request=request)
        scored: list[tuple[float, int, int, str]] = []
        for day_index, day in enumerate(self.schedule.working_days):
            for period in self.schedule.available_periods(day):
                if lower_bound is not None and (day_index, period) <= lower_bound:
                    continue
                verdict = evaluate_placement(self._context, request, day, period)
                if verdict.legal:
                    scored.append((verdict.score, day_index, period, day))
                    continue
                for violation in verdict.violations:
                    dead_end.blocked[violation.code] += 1
                    dead_end.messages.setdefault(violation.code, violation.message)
        scored.sort(key=lambda item: (item[0], item[1], item[2]))
        return [(day, period) for _, _, period, day in scored], dead_end

    def _apply(self, point: _DecisionPoint) -> None:
        self.attempts += 1
        if self.attempts > self.max_attempts:
            details = {"max_attempts": self.max_attempts, "placed": len(self._placements), "requests": len(self.requests)}
            if self._first_dead_end is not None:
                details["first_dead_end"] = self._first_dead_end.as_details()
            raise SchedulingTimeoutError(
                f"Gave up on class {self.class_id} after {self.max_attempts} placement attempts",
                details=details,
            )
        request = point.request
        day, period = point.candidates[point.cursor]
        self.schedule.place(
            day=day,
            start_period=period,
            length=request.block_size,
            subject_id=request.subject_id,
            faculty_id=request.faculty_id,
            is_lab=request.is_lab,
        )
        for target in range(period, period + request.block_size):
            self.ledger.reserve(request.faculty_id, day, target, self.class_id)
        self._placements[request.request_id] = (day, period)

    def _undo(self, point: _DecisionPoint) -> None:
        request = point.request
        day, period = self._placements.pop(request.request_id)
        self.schedule.clear_block(day=day, start_period=period, length=request.block_size)
        for target in range(period, period + request.block_size):
            self.ledger.release(request.faculty_id, day, target)

    def _backtrack(self) -> bool:
        self.backtracks += 1
        while self._stack:
            point = self._stack[-1]
            self._undo(point)
            point.cursor += 1
            if point.cursor < len(point.candidates):
                self._apply(point)
                return True
            self._stack.pop()
        return False

    def _rollback(self) -> None:
        while self._stack:
            point = self._stack.pop()
            if point.request.request_id in self._placements:
                self._undo(point)
        for faculty_id, day, period in self._locked_reservations:
            self.ledger.release(faculty_id, day, period)
        self._locked_reservations.clear()
