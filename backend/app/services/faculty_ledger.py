from __future__ import annotations

import logging
from typing import Iterable, Mapping

from app.core.exceptions import DoubleBookingError
from app.services.slot_grid import ClassSchedule

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, str, int]
LedgerEntry = tuple[str, str, int, str]


class FacultyLedger:
    """Faculty occupancy for one generation run: (faculty, day, period) -> class id."""

    def __init__(self, occupancy: Mapping[LedgerKey, str] | None = None) -> None:
        self._occupancy: dict[LedgerKey, str] = dict(occupancy or {})
        self.conflicts: list[dict] = []

    @classmethod
    def load(
        cls,
        schedules: Mapping[str, ClassSchedule],
        *,
        exclude_class_id: str | None = None,
        strict: bool = True,
    ) -> "FacultyLedger":
        ledger = cls()
        for class_id in sorted(schedules):
            if class_id == exclude_class_id:
                continue
            if strict:
                ledger.commit(class_id, schedules[class_id])
                continue
            for slot in schedules[class_id].occupied_slots():
                if slot.faculty_id is None:
                    continue
                try:
                    ledger.reserve(slot.faculty_id, slot.day, slot.period, class_id)
                except DoubleBookingError as exc:
                    # Committed data already clashes; the first holder keeps the period.
                    logger.warning("Skipping conflicting committed slot: %s", exc.message)
                    ledger.conflicts.append(exc.details)
        logger.debug(
            "Ledger loaded classes=%s entries=%s excluded=%s",
            len(schedules),
            len(ledger),
            exclude_class_id,
        )
        return ledger

    def __len__(self) -> int:
        return len(self._occupancy)

    def holder(self, faculty_id: str, day: str, period: int) -> str | None:
        return self._occupancy.get((faculty_id, day, period))

    def is_free(self, faculty_id: str, day: str, period: int) -> bool:
        return (faculty_id, day, period) not in self._occupancy

    def reserve(self, faculty_id: str, day: str, period: int, class_id: str) -> None:
        key = (faculty_id, day, period)
        current = self._occupancy.get(key)
        if current is not None and current != class_id:
            raise DoubleBookingError(
                f"Faculty {faculty_id} is already booked on {day} period {period} by class {current}",
                details={
                    "faculty_id": faculty_id,
                    "day": day,
                    "period": period,
                    "holder_class_id": current,
                    "requested_class_id": class_id,
                },
            )
        self._occupancy[key] = class_id

    def release(self, faculty_id: str, day: str, period: int) -> None:
        self._occupancy.pop((faculty_id, day, period), None)

    def commit(self, class_id: str, schedule: ClassSchedule) -> None:
        for slot in schedule.occupied_slots():
            if slot.faculty_id is None:
                continue
            self.reserve(slot.faculty_id, slot.day, slot.period, class_id)

    def release_class(self, class_id: str) -> list[LedgerEntry]:
        released = [
            (faculty_id, day, period, holder)
            for (faculty_id, day, period), holder in self._occupancy.items()
            if holder == class_id
        ]
        for faculty_id, day, period, _ in released:
            del self._occupancy[(faculty_id, day, period)]
        return released

    def restore(self, entries: Iterable[LedgerEntry]) -> None:
        for faculty_id, day, period, class_id in entries:
            self.reserve(faculty_id, day, period, class_id)

    def entries_for(self, faculty_id: str) -> list[LedgerEntry]:
        return sorted(
            (owner, day, period, holder)
            for (owner, day, period), holder in self._occupancy.items()
            if owner == faculty_id
        )

    def snapshot(self) -> dict[LedgerKey, str]:
        return dict(self._occupancy)
