from __future__ import annotations

from enum import Enum
import logging
from time import perf_counter
from typing import Callable, Protocol

from app.core.exceptions import DoubleBookingError, SchedulerError
from app.schemas.generator import ClassGenerationResult, RegenerationReport
from app.services.class_scheduler import ClassScheduler
from app.services.faculty_ledger import FacultyLedger
from app.services.slot_grid import ClassSchedule
from app.services.timetable_store import TimetableJob, TimetableRef

logger = logging.getLogger(__name__)


class ClassRunState(str, Enum):
    pending = "pending"
    scheduling = "scheduling"
    committed = "committed"
    failed = "failed"


class TimetableStore(Protocol):
    def list_refs(self, academic_year: str) -> list[TimetableRef]: ...

    def committed_schedules(self, academic_year: str) -> dict[str, ClassSchedule]: ...

    def load_job(self, class_id: str, academic_year: str) -> TimetableJob: ...

    def commit(self, job: TimetableJob, schedule: ClassSchedule) -> None: ...


class RegenerationCoordinator:
    """Runs the class scheduler for one class or every class of an academic year.

    Classes are processed strictly one at a time against a single ledger.
    A class that commits becomes the ledger's source of truth for the rest of
    the run; a class that fails keeps its previously committed schedule.
    """

    def __init__(self, store: TimetableStore, *, max_attempts: int = 20_000) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.states: dict[str, ClassRunState] = {}

    def regenerate_one(self, class_id: str, academic_year: str) -> ClassGenerationResult:
        self.states = {class_id: ClassRunState.pending}
        ledger = FacultyLedger.load(
            self.store.committed_schedules(academic_year),
            exclude_class_id=class_id,
            strict=False,
        )
        logger.info("Regenerating class_id=%s academic_year=%s", class_id, academic_year)
        return self._generate(class_id, academic_year, ledger)

    def regenerate_all(
        self,
        academic_year: str,
        *,
        should_cancel: Callable[[], bool] | None = None,
    ) -> RegenerationReport:
        started = perf_counter()
        refs = self.store.list_refs(academic_year)
        self.states = {ref.class_id: ClassRunState.pending for ref in refs}
        # Classes not reached yet keep blocking with their previous schedules.
        ledger = FacultyLedger.load(self.store.committed_schedules(academic_year), strict=False)
        logger.info("Regenerating all classes academic_year=%s classes=%s", academic_year, len(refs))

        report = RegenerationReport(academic_year=academic_year)
        for position, ref in enumerate(refs):
            if should_cancel is not None and should_cancel():
                logger.warning(
                    "Regeneration cancelled academic_year=%s remaining=%s",
                    academic_year,
                    len(refs) - position,
                )
                report.cancelled = True
                report.results.extend(self._cancelled_result(item) for item in refs[position:])
                break
            previous_entries = ledger.release_class(ref.class_id)
            result = self._generate(ref.class_id, academic_year, ledger)
            if result.status == "failed":
                ledger.restore(previous_entries)
            report.results.append(result)

        report.committed = sum(1 for item in report.results if item.status == "success")
        report.failed = len(report.results) - report.committed
        report.runtime_ms = int((perf_counter() - started) * 1000)
        logger.info(
            "Regeneration finished academic_year=%s committed=%s failed=%s runtime_ms=%s",
            academic_year,
            report.committed,
            report.failed,
            report.runtime_ms,
        )
        return report

    def _generate(self, class_id: str, academic_year: str, ledger: FacultyLedger) -> ClassGenerationResult:
        self.states[class_id] = ClassRunState.scheduling
        job: TimetableJob | None = None
        scheduler: ClassScheduler | None = None
        try:
            job = self.store.load_job(class_id, academic_year)
            scheduler = ClassScheduler(
                class_id=class_id,
                template=job.template,
                assignments=job.assignments,
                ledger=ledger,
                max_attempts=self.max_attempts,
                previous_schedule=job.schedule,
            )
            outcome = scheduler.run()
        except DoubleBookingError as exc:
            # The ledger ordering guarantee was broken; surface it, never retry.
            logger.error("Double booking while scheduling class_id=%s: %s", class_id, exc.message)
            return self._failed(class_id, job, exc, scheduler)
        except SchedulerError as exc:
            logger.warning(
                "Scheduling failed class_id=%s reason=%s: %s",
                class_id,
                exc.reason_code,
                exc.message,
            )
            return self._failed(class_id, job, exc, scheduler)

        try:
            self.store.commit(job, outcome.schedule)
        except Exception as exc:
            ledger.release_class(class_id)
            logger.exception("Failed to store schedule class_id=%s timetable_id=%s", class_id, job.timetable_id)
            self.states[class_id] = ClassRunState.failed
            return ClassGenerationResult(
                class_id=class_id,
                timetable_id=job.timetable_id,
                status="failed",
                reason_code="commit_failed",
                reason=f"Schedule could not be stored: {exc}",
                attempts=outcome.attempts,
            )
        self.states[class_id] = ClassRunState.committed
        return ClassGenerationResult(
            class_id=class_id,
            timetable_id=job.timetable_id,
            status="success",
            attempts=outcome.attempts,
            schedule=outcome.schedule.to_payload(),
        )

    def _failed(
        self,
        class_id: str,
        job: TimetableJob | None,
        exc: SchedulerError,
        scheduler: ClassScheduler | None,
    ) -> ClassGenerationResult:
        self.states[class_id] = ClassRunState.failed
        return ClassGenerationResult(
            class_id=class_id,
            timetable_id=job.timetable_id if job is not None else None,
            status="failed",
            reason_code=exc.reason_code,
            reason=exc.message,
            details=exc.details,
            attempts=scheduler.attempts if scheduler is not None else 0,
        )

    @staticmethod
    def _cancelled_result(ref: TimetableRef) -> ClassGenerationResult:
        return ClassGenerationResult(
            class_id=ref.class_id,
            timetable_id=ref.timetable_id,
            status="failed",
            reason_code="cancelled",
            reason="Run was cancelled before this class was scheduled",
        )
