import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import get_settings
from app.core.exceptions import DoubleBookingError, InvalidTemplateError
from app.models.faculty import Faculty
from app.models.school_class import SchoolClass
from app.models.subject import Subject
from app.models.template import TimetableTemplate
from app.models.timetable import ClassAssignment, Timetable
from app.schemas.template import DAY_VALUES, TemplateConfig, normalize_day
from app.schemas.timetable import (
    AssignmentOut,
    AssignmentsUpdate,
    ConflictReport,
    FacultyScheduleEntry,
    FacultyScheduleOut,
    SlotEditRequest,
    TimetableCreate,
    TimetableOut,
)
from app.services.conflict_service import ConflictService
from app.services.faculty_ledger import FacultyLedger
from app.services.slot_grid import ClassSchedule, Slot, build_empty_grid
from app.services.timetable_store import SqlTimetableStore, schedule_from_record, template_from_record

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def _get_timetable(db: Session, timetable_id: str) -> Timetable:
    record = db.get(Timetable, timetable_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return record


def _serialize(db: Session, record: Timetable) -> TimetableOut:
    assignments = list(
        db.execute(
            select(ClassAssignment)
            .where(ClassAssignment.timetable_id == record.id)
            .order_by(ClassAssignment.position, ClassAssignment.created_at)
        ).scalars()
    )
    return TimetableOut.model_validate(
        {
            "id": record.id,
            "class_id": record.class_id,
            "academic_year": record.academic_year,
            "template_id": record.template_id,
            "periods_per_day": record.periods_per_day,
            "working_days": record.working_days,
            "period_timings": record.period_timings,
            "guidelines": record.guidelines,
            "schedule": record.schedule or {},
            "assignments": [AssignmentOut.model_validate(item) for item in assignments],
            "created_at": record.created_at,
            "last_generated": record.last_generated,
        }
    )


def _resolve_template(db: Session, payload: TimetableCreate) -> TemplateConfig:
    values: dict = {"periods_per_day": 8}
    if payload.template_id:
        template = db.get(TimetableTemplate, payload.template_id)
        if template is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
        values = {
            "periods_per_day": template.periods_per_day,
            "working_days": template.working_days,
            "period_timings": template.period_timings,
            "guidelines": template.guidelines,
        }
        template.usage_count += 1
    overrides = payload.model_dump(
        mode="json",
        include={"periods_per_day", "working_days", "period_timings", "guidelines"},
        exclude_none=True,
    )
    values.update(overrides)
    config = TemplateConfig.model_validate(values)
    # Rejects duplicate days and out-of-range timings before anything is stored.
    build_empty_grid(config)
    return config


def _lab_run(schedule: ClassSchedule, slot: Slot) -> list[Slot]:
    """The slot plus its neighbours holding the same lab, so lab blocks change as a whole."""
    if not slot.is_lab or not slot.is_occupied:
        return [slot]
    run = [slot]
    for step in (-1, 1):
        neighbour = schedule.slot(slot.day, slot.period + step)
        while (
            neighbour is not None
            and neighbour.is_lab
            and neighbour.subject_id == slot.subject_id
            and neighbour.faculty_id == slot.faculty_id
        ):
            run.append(neighbour)
            neighbour = schedule.slot(slot.day, neighbour.period + step)
    return sorted(run, key=lambda item: item.period)


def _faculty_ledger_without(db: Session, record: Timetable) -> FacultyLedger:
    schedules = SqlTimetableStore(db).committed_schedules(record.academic_year)
    return FacultyLedger.load(schedules, exclude_class_id=record.class_id, strict=False)


@router.post("/", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
def create_timetable(payload: TimetableCreate, db: Session = Depends(get_db)) -> TimetableOut:
    if db.get(SchoolClass, payload.class_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    config = _resolve_template(db, payload)
    structure = config.model_dump(mode="json")

    record = db.execute(
        select(Timetable).where(
            Timetable.class_id == payload.class_id,
            Timetable.academic_year == payload.academic_year,
        )
    ).scalar_one_or_none()
    if record is None:
        record = Timetable(class_id=payload.class_id, academic_year=payload.academic_year)
        db.add(record)
    else:
        logger.info("Replacing timetable structure class_id=%s academic_year=%s", record.class_id, record.academic_year)
    record.template_id = payload.template_id
    for key, value in structure.items():
        setattr(record, key, value)
    # A new structure invalidates the committed grid.
    record.schedule = {}
    record.last_generated = None
    db.commit()
    db.refresh(record)
    return _serialize(db, record)


@router.get("/conflicts", response_model=ConflictReport)
def get_conflicts(
    academic_year: str | None = Query(default=None, min_length=4, max_length=20),
    db: Session = Depends(get_db),
) -> ConflictReport:
    year = academic_year or settings.default_academic_year
    records = db.execute(select(Timetable).where(Timetable.academic_year == year)).scalars()
    schedules: dict[str, tuple[str, ClassSchedule]] = {}
    for record in records:
        schedule = schedule_from_record(record)
        if schedule is not None:
            schedules[record.class_id] = (record.id, schedule)
    return ConflictService(year, schedules).detect_conflicts()


@router.get("/faculty/{faculty_id}", response_model=FacultyScheduleOut)
def get_faculty_schedule(
    faculty_id: str,
    academic_year: str | None = Query(default=None, min_length=4, max_length=20),
    db: Session = Depends(get_db),
) -> FacultyScheduleOut:
    if db.get(Faculty, faculty_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Faculty member not found")
    year = academic_year or settings.default_academic_year
    entries: list[FacultyScheduleEntry] = []
    records = db.execute(
        select(Timetable).where(Timetable.academic_year == year).order_by(Timetable.class_id)
    ).scalars()
    for record in records:
        schedule = schedule_from_record(record)
        if schedule is None:
            continue
        for slot in schedule.occupied_slots():
            if slot.faculty_id != faculty_id:
                continue
            entries.append(
                FacultyScheduleEntry(
                    day=slot.day,
                    period=slot.period,
                    class_id=record.class_id,
                    timetable_id=record.id,
                    subject_id=slot.subject_id,
                    is_lab=slot.is_lab,
                )
            )
    entries.sort(key=lambda item: (DAY_VALUES.index(item.day), item.period, item.class_id))
    return FacultyScheduleOut(faculty_id=faculty_id, academic_year=year, entries=entries)


@router.get("/{timetable_id}", response_model=TimetableOut)
def get_timetable(timetable_id: str, db: Session = Depends(get_db)) -> TimetableOut:
    return _serialize(db, _get_timetable(db, timetable_id))


@router.put("/{timetable_id}/assignments", response_model=TimetableOut)
def replace_assignments(
    timetable_id: str,
    payload: AssignmentsUpdate,
    db: Session = Depends(get_db),
) -> TimetableOut:
    record = _get_timetable(db, timetable_id)
    subject_ids = {item.subject_id for item in payload.assignments}
    faculty_ids = {item.faculty_id for item in payload.assignments}
    known_subjects = set(db.execute(select(Subject.id).where(Subject.id.in_(subject_ids))).scalars())
    known_faculty = set(db.execute(select(Faculty.id).where(Faculty.id.in_(faculty_ids))).scalars())
    missing_subjects = sorted(subject_ids - known_subjects)
    missing_faculty = sorted(faculty_ids - known_faculty)
    if missing_subjects or missing_faculty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"missing_subject_ids": missing_subjects, "missing_faculty_ids": missing_faculty},
        )

    db.execute(delete(ClassAssignment).where(ClassAssignment.timetable_id == record.id))
    for position, item in enumerate(payload.assignments):
        db.add(ClassAssignment(timetable_id=record.id, position=position, **item.model_dump()))
    db.commit()
    db.refresh(record)
    return _serialize(db, record)


@router.put("/{timetable_id}/slots/{day}/{period}", response_model=TimetableOut)
def edit_slot(
    timetable_id: str,
    day: str,
    period: int,
    payload: SlotEditRequest,
    db: Session = Depends(get_db),
) -> TimetableOut:
    record = _get_timetable(db, timetable_id)
    try:
        day = normalize_day(day)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    schedule = schedule_from_record(record) or build_empty_grid(template_from_record(record))
    slot = schedule.slot(day, period)
    if slot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No slot at {day} period {period}")
    if slot.is_break and payload.subject_id is not None:
        raise InvalidTemplateError(
            f"{day} period {period} is a break and cannot hold a subject",
            details={"day": day, "period": period},
        )

    if payload.subject_id is None:
        for item in _lab_run(schedule, slot):
            item.clear()
    else:
        subject = db.get(Subject, payload.subject_id)
        if subject is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
        if db.get(Faculty, payload.faculty_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Faculty member not found")
        # A lab is edited as its whole block starting at the requested period.
        length = max(1, subject.default_duration_periods) if subject.is_lab else 1
        block = [schedule.slot(day, item) for item in range(period, period + length)]
        if any(item is None or item.is_break for item in block):
            raise InvalidTemplateError(
                f"Lab {subject.name} needs {length} contiguous teaching periods from {day} period {period}",
                details={"day": day, "period": period, "periods_needed": length},
            )
        ledger = _faculty_ledger_without(db, record)
        for item in block:
            holder = ledger.holder(payload.faculty_id, day, item.period)
            if holder is not None:
                raise DoubleBookingError(
                    f"Faculty {payload.faculty_id} is already booked on {day} period {item.period} by class {holder}",
                    details={
                        "faculty_id": payload.faculty_id,
                        "day": day,
                        "period": item.period,
                        "holder_class_id": holder,
                        "requested_class_id": record.class_id,
                    },
                )
        for item in block:
            for stale in _lab_run(schedule, item):
                stale.clear()
        for item in block:
            item.fill(
                subject_id=subject.id,
                faculty_id=payload.faculty_id,
                is_lab=subject.is_lab,
                is_locked=payload.is_locked,
            )

    record.schedule = schedule.to_payload()
    db.commit()
    db.refresh(record)
    logger.info("Edited slot timetable_id=%s day=%s period=%s locked=%s", record.id, day, period, slot.is_locked)
    return _serialize(db, record)


@router.put("/{timetable_id}/reset", response_model=TimetableOut)
def reset_timetable(timetable_id: str, db: Session = Depends(get_db)) -> TimetableOut:
    record = _get_timetable(db, timetable_id)
    record.schedule = {}
    record.last_generated = None
    db.commit()
    db.refresh(record)
    return _serialize(db, record)


@router.delete("/{timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_timetable(timetable_id: str, db: Session = Depends(get_db)) -> None:
    record = _get_timetable(db, timetable_id)
    db.execute(delete(ClassAssignment).where(ClassAssignment.timetable_id == record.id))
    db.delete(record)
    db.commit()
