from collections import defaultdict
from typing import Dict, List, Tuple

from app.schemas.timetable import ConflictDetail, ConflictReport
from app.services.slot_grid import ClassSchedule, Slot


class ConflictService:
    """Audits committed class schedules of one academic year for hard clashes."""

    def __init__(self, academic_year: str, schedules: Dict[str, Tuple[str, ClassSchedule]]):
        # class_id -> (timetable_id, schedule)
        self.academic_year = academic_year
        self.schedules = schedules

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []
        conflicts.extend(self._faculty_double_bookings())
        for class_id in sorted(self.schedules):
            timetable_id, schedule = self.schedules[class_id]
            conflicts.extend(self._broken_lab_blocks(class_id, timetable_id, schedule))
            conflicts.extend(self._subjects_on_breaks(class_id, timetable_id, schedule))
        return ConflictReport(academic_year=self.academic_year, conflicts=conflicts)

    def _faculty_double_bookings(self) -> List[ConflictDetail]:
        # Bucket by (faculty, day, period) instead of comparing every pair of slots
        holders: Dict[Tuple[str, str, int], List[Tuple[str, str]]] = defaultdict(list)
        for class_id in sorted(self.schedules):
            timetable_id, schedule = self.schedules[class_id]
            for slot in schedule.occupied_slots():
                if slot.faculty_id:
                    holders[(slot.faculty_id, slot.day, slot.period)].append((class_id, timetable_id))

        conflicts: List[ConflictDetail] = []
        for (faculty_id, day, period), owners in sorted(holders.items()):
            if len(owners) < 2:
                continue
            class_ids = [owner[0] for owner in owners]
            conflicts.append(ConflictDetail(
                id=f"fac-{faculty_id}-{day}-{period}",
                conflict_type="faculty_conflict",
                description=f"Faculty {faculty_id} is booked on {day} period {period} by classes {', '.join(class_ids)}",
                affected_timetables=[owner[1] for owner in owners],
            ))
        return conflicts

    def _broken_lab_blocks(self, class_id: str, timetable_id: str, schedule: ClassSchedule) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        for day, slots in schedule.days.items():
            # A lab may meet only once a day, so its periods on that day must be one unbroken run.
            lab_periods: Dict[str, List[int]] = defaultdict(list)
            for slot in slots:
                if slot.is_occupied and slot.is_lab:
                    lab_periods[slot.subject_id].append(slot.period)
            for subject_id, periods in sorted(lab_periods.items()):
                periods.sort()
                if periods[-1] - periods[0] + 1 == len(periods):
                    continue
                conflicts.append(ConflictDetail(
                    id=f"lab-{class_id}-{day}-{subject_id}",
                    conflict_type="lab_contiguity",
                    description=(
                        f"Lab {subject_id} in class {class_id} is split on {day} "
                        f"(periods {', '.join(str(item) for item in periods)})"
                    ),
                    affected_timetables=[timetable_id],
                ))
        return conflicts

    def _subjects_on_breaks(self, class_id: str, timetable_id: str, schedule: ClassSchedule) -> List[ConflictDetail]:
        offending: List[Slot] = [slot for slot in schedule.occupied_slots() if slot.is_break]
        return [
            ConflictDetail(
                id=f"break-{class_id}-{slot.day}-{slot.period}",
                conflict_type="break_occupied",
                description=f"Subject {slot.subject_id} sits in the break at {slot.day} period {slot.period} of class {class_id}",
                affected_timetables=[timetable_id],
            )
            for slot in offending
        ]
