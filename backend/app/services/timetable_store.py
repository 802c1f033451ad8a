from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidAssignmentError, InvalidTemplateError, ResourceNotFoundError
from app.models.faculty import Faculty
from app.models.school_class import SchoolClass
from app.models.subject import Subject
from app.models.timetable import ClassAssignment, Timetable
from app.schemas.template import TemplateConfig
from app.services.class_scheduler import Assignment
from app.services.slot_grid import ClassSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimetableRef:
    timetable_id: str
    class_id: str


@dataclass(frozen=True)
class TimetableJob:
    timetable_id: str
    class_id: str
    academic_year: str
    template: TemplateConfig
    assignments: tuple[Assignment, ...]
    schedule: ClassSchedule | None


def template_from_record(record: Timetable) -> TemplateConfig:
    try:
        return TemplateConfig.model_validate(
            {
                "periods_per_day": record.periods_per_day,
                "working_days": record.working_days or [],
                "period_timings": record.period_timings or [],
                "guidelines": record.guidelines or {},
            }
        )
    except ValidationError as exc:
        raise InvalidTemplateError(
            f"Timetable {record.id} has an unreadable template",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def schedule_from_record(record: Timetable) -> ClassSchedule | None:
    if not record.schedule:
        return None
    return ClassSchedule.from_payload(record.schedule)


class SqlTimetableStore:
    """Timetable structures, assignments and committed schedules held in the database."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_refs(self, academic_year: str) -> list[TimetableRef]:
        rows = self.db.execute(
            select(Timetable.id, Timetable.class_id)
            .join(SchoolClass, SchoolClass.id == Timetable.class_id, isouter=True)
            .where(Timetable.academic_year == academic_year)
            .order_by(SchoolClass.created_at, SchoolClass.name, Timetable.class_id)
        ).all()
        return [TimetableRef(timetable_id=row[0], class_id=row[1]) for row in rows]

    def committed_schedules(self, academic_year: str) -> dict[str, ClassSchedule]:
        records = self.db.execute(select(Timetable).where(Timetable.academic_year == academic_year)).scalars()
        schedules: dict[str, ClassSchedule] = {}
        for record in records:
            schedule = schedule_from_record(record)
            if schedule is not None:
                schedules[record.class_id] = schedule
        return schedules

    def load_job(self, class_id: str, academic_year: str) -> TimetableJob:
        record = self.db.execute(
            select(Timetable).where(Timetable.class_id == class_id, Timetable.academic_year == academic_year)
        ).scalar_one_or_none()
        if record is None:
            raise ResourceNotFoundError("Timetable for class", f"{class_id} ({academic_year})")
        return TimetableJob(
            timetable_id=record.id,
            class_id=record.class_id,
            academic_year=record.academic_year,
            template=template_from_record(record),
            assignments=tuple(self._load_assignments(record)),
            schedule=schedule_from_record(record),
        )

    def _load_assignments(self, record: Timetable) -> list[Assignment]:
        rows = list(
            self.db.execute(
                select(ClassAssignment)
                .where(ClassAssignment.timetable_id == record.id)
                .order_by(ClassAssignment.position, ClassAssignment.created_at, ClassAssignment.id)
            ).scalars()
        )
        subject_ids = {row.subject_id for row in rows}
        faculty_ids = {row.faculty_id for row in rows}
        subjects = {
            item.id: item
            for item in self.db.execute(select(Subject).where(Subject.id.in_(subject_ids))).scalars()
        }
        known_faculty = set(self.db.execute(select(Faculty.id).where(Faculty.id.in_(faculty_ids))).scalars())

        assignments: list[Assignment] = []
        for row in rows:
            subject = subjects.get(row.subject_id)
            if subject is None:
                raise InvalidAssignmentError(
                    f"Subject {row.subject_id} assigned to class {record.class_id} does not exist",
                    details={"subject_id": row.subject_id},
                )
            if row.faculty_id not in known_faculty:
                raise InvalidAssignmentError(
                    f"Faculty {row.faculty_id} assigned to class {record.class_id} does not exist",
                    details={"faculty_id": row.faculty_id},
                )
            assignments.append(
                Assignment(
                    faculty_id=row.faculty_id,
                    subject_id=row.subject_id,
                    is_lab=subject.is_lab,
                    periods_needed=max(1, subject.default_duration_periods),
                    weekly_sessions=row.weekly_sessions,
                    is_sports=subject.is_sports,
                )
            )
        return assignments

    def commit(self, job: TimetableJob, schedule: ClassSchedule) -> None:
        record = self.db.get(Timetable, job.timetable_id)
        if record is None:
            raise ResourceNotFoundError("Timetable", job.timetable_id)
        record.schedule = schedule.to_payload()
        record.last_generated = datetime.now(tz=timezone.utc)
        self.db.add(record)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Committed schedule class_id=%s timetable_id=%s", job.class_id, job.timetable_id)
