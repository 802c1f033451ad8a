from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.models.timetable_generation import GenerationScope
from app.schemas.timetable import SchedulePayload

ClassGenerationStatus = Literal["success", "failed"]


class GenerationSettingsBase(BaseModel):
    max_attempts: int = Field(default=20_000, ge=1, le=2_000_000)


class GenerationSettingsUpdate(GenerationSettingsBase):
    pass


class GenerationSettingsOut(GenerationSettingsBase):
    id: int


class GenerateTimetableRequest(BaseModel):
    settings_override: GenerationSettingsBase | None = None


class RegenerateAllRequest(BaseModel):
    academic_year: str | None = Field(default=None, min_length=4, max_length=20)
    settings_override: GenerationSettingsBase | None = None


class ClassGenerationResult(BaseModel):
    class_id: str
    timetable_id: str | None = None
    status: ClassGenerationStatus
    reason_code: str | None = None
    reason: str | None = None
    details: dict = Field(default_factory=dict)
    attempts: int = 0
    schedule: SchedulePayload | None = None


class RegenerationReport(BaseModel):
    academic_year: str
    results: list[ClassGenerationResult] = Field(default_factory=list)
    committed: int = 0
    failed: int = 0
    cancelled: bool = False
    runtime_ms: int = 0


class GenerationRunOut(BaseModel):
    id: str
    scope: GenerationScope
    academic_year: str
    committed: int
    failed: int
    runtime_ms: int
    results: list[dict] = Field(default_factory=list)
    triggered_at: datetime

    model_config = {"from_attributes": True}
