from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.template import Guidelines, PeriodTiming, TemplateConfig, normalize_day


class SlotPayload(BaseModel):
    day: str
    period: int = Field(ge=1)
    subject_id: str | None = None
    faculty_id: str | None = None
    is_lab: bool = False
    is_break: bool = False
    is_locked: bool = False


SchedulePayload = dict[str, list[SlotPayload]]


class AssignmentIn(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)
    faculty_id: str = Field(min_length=1, max_length=36)
    weekly_sessions: int = Field(default=1, ge=1, le=7)


class AssignmentOut(AssignmentIn):
    id: str
    position: int = 0

    model_config = {"from_attributes": True}


class AssignmentsUpdate(BaseModel):
    assignments: list[AssignmentIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_pairs(self) -> "AssignmentsUpdate":
        seen: set[tuple[str, str]] = set()
        for item in self.assignments:
            key = (item.subject_id, item.faculty_id)
            if key in seen:
                raise ValueError(f"Duplicate assignment for subject {item.subject_id} and faculty {item.faculty_id}")
            seen.add(key)
        return self


class TimetableCreate(BaseModel):
    class_id: str = Field(min_length=1, max_length=36)
    academic_year: str = Field(min_length=4, max_length=20)
    template_id: str | None = Field(default=None, max_length=36)
    periods_per_day: int | None = Field(default=None, ge=1, le=12)
    working_days: list[str] | None = None
    period_timings: list[PeriodTiming] | None = None
    guidelines: Guidelines | None = None

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [normalize_day(item) for item in value]


class TimetableOut(BaseModel):
    id: str
    class_id: str
    academic_year: str
    template_id: str | None = None
    periods_per_day: int
    working_days: list[str]
    period_timings: list[PeriodTiming]
    guidelines: Guidelines
    schedule: SchedulePayload = Field(default_factory=dict)
    assignments: list[AssignmentOut] = Field(default_factory=list)
    created_at: datetime | None = None
    last_generated: datetime | None = None

    model_config = {"from_attributes": True}

    def template(self) -> TemplateConfig:
        return TemplateConfig(
            periods_per_day=self.periods_per_day,
            working_days=self.working_days,
            period_timings=self.period_timings,
            guidelines=self.guidelines,
        )


class SlotEditRequest(BaseModel):
    subject_id: str | None = Field(default=None, max_length=36)
    faculty_id: str | None = Field(default=None, max_length=36)
    is_locked: bool = True

    @model_validator(mode="after")
    def validate_occupant(self) -> "SlotEditRequest":
        if (self.subject_id is None) != (self.faculty_id is None):
            raise ValueError("subject_id and faculty_id must be provided together")
        return self


class FacultyScheduleEntry(BaseModel):
    day: str
    period: int
    class_id: str
    timetable_id: str
    subject_id: str
    is_lab: bool = False


class FacultyScheduleOut(BaseModel):
    faculty_id: str
    academic_year: str
    entries: list[FacultyScheduleEntry] = Field(default_factory=list)


class ConflictDetail(BaseModel):
    id: str
    conflict_type: str
    description: str
    severity: str = "hard"
    affected_timetables: list[str] = Field(default_factory=list)


class ConflictReport(BaseModel):
    academic_year: str
    conflicts: list[ConflictDetail] = Field(default_factory=list)
