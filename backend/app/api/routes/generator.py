import logging
from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import get_settings
from app.models.timetable import Timetable
from app.models.timetable_generation import (
    GenerationScope,
    TimetableGenerationRun,
    TimetableGenerationSettings,
)
from app.schemas.generator import (
    ClassGenerationResult,
    GenerateTimetableRequest,
    GenerationRunOut,
    GenerationSettingsBase,
    GenerationSettingsOut,
    GenerationSettingsUpdate,
    RegenerateAllRequest,
    RegenerationReport,
)
from app.services.generation_guard import generation_slot
from app.services.regeneration import RegenerationCoordinator
from app.services.timetable_store import SqlTimetableStore

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def default_generation_settings() -> GenerationSettingsBase:
    return GenerationSettingsBase(max_attempts=settings.scheduler_max_attempts)


def load_generation_settings(db: Session) -> GenerationSettingsOut:
    record = db.get(TimetableGenerationSettings, 1)
    if record is None:
        defaults = default_generation_settings()
        return GenerationSettingsOut(id=1, **defaults.model_dump())
    return GenerationSettingsOut(id=record.id, max_attempts=record.max_attempts)


def _effective_settings(db: Session, override: GenerationSettingsBase | None) -> GenerationSettingsBase:
    if override is not None:
        return override
    stored = load_generation_settings(db)
    return GenerationSettingsBase(max_attempts=stored.max_attempts)


def _record_run(
    db: Session,
    *,
    scope: GenerationScope,
    academic_year: str,
    results: list[ClassGenerationResult],
    runtime_ms: int,
) -> None:
    committed = sum(1 for item in results if item.status == "success")
    run = TimetableGenerationRun(
        scope=scope,
        academic_year=academic_year,
        committed=committed,
        failed=len(results) - committed,
        runtime_ms=runtime_ms,
        # Schedules are already stored on the timetables themselves.
        results=[item.model_dump(mode="json", exclude={"schedule"}) for item in results],
    )
    db.add(run)
    db.commit()


@router.get("/generator/settings", response_model=GenerationSettingsOut)
def get_generation_settings(db: Session = Depends(get_db)) -> GenerationSettingsOut:
    return load_generation_settings(db)


@router.put("/generator/settings", response_model=GenerationSettingsOut)
def update_generation_settings(
    payload: GenerationSettingsUpdate,
    db: Session = Depends(get_db),
) -> GenerationSettingsOut:
    record = db.get(TimetableGenerationSettings, 1)
    data = payload.model_dump()
    if record is None:
        record = TimetableGenerationSettings(id=1, **data)
        db.add(record)
    else:
        for key, value in data.items():
            setattr(record, key, value)
    db.commit()
    db.refresh(record)
    return load_generation_settings(db)


@router.post("/generator/timetables/{timetable_id}/generate", response_model=ClassGenerationResult)
def generate_timetable(
    timetable_id: str,
    payload: GenerateTimetableRequest | None = None,
    db: Session = Depends(get_db),
) -> ClassGenerationResult:
    record = db.get(Timetable, timetable_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    payload = payload or GenerateTimetableRequest()
    run_settings = _effective_settings(db, payload.settings_override)

    with generation_slot(record.academic_year):
        started = perf_counter()
        coordinator = RegenerationCoordinator(SqlTimetableStore(db), max_attempts=run_settings.max_attempts)
        result = coordinator.regenerate_one(record.class_id, record.academic_year)
        _record_run(
            db,
            scope=GenerationScope.single,
            academic_year=record.academic_year,
            results=[result],
            runtime_ms=int((perf_counter() - started) * 1000),
        )
    if result.status == "failed":
        logger.warning("Generation failed timetable_id=%s reason=%s", timetable_id, result.reason_code)
    return result


@router.post("/generator/regenerate-all", response_model=RegenerationReport)
def regenerate_all(
    payload: RegenerateAllRequest | None = None,
    db: Session = Depends(get_db),
) -> RegenerationReport:
    payload = payload or RegenerateAllRequest()
    academic_year = payload.academic_year or settings.default_academic_year
    run_settings = _effective_settings(db, payload.settings_override)

    with generation_slot(academic_year):
        coordinator = RegenerationCoordinator(SqlTimetableStore(db), max_attempts=run_settings.max_attempts)
        report = coordinator.regenerate_all(academic_year)
        _record_run(
            db,
            scope=GenerationScope.all,
            academic_year=academic_year,
            results=report.results,
            runtime_ms=report.runtime_ms,
        )
    return report


@router.get("/generator/runs", response_model=list[GenerationRunOut])
def list_generation_runs(
    academic_year: str | None = Query(default=None, min_length=4, max_length=20),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[GenerationRunOut]:
    query = select(TimetableGenerationRun).order_by(TimetableGenerationRun.triggered_at.desc())
    if academic_year:
        query = query.where(TimetableGenerationRun.academic_year == academic_year)
    return list(db.execute(query.limit(limit)).scalars())
