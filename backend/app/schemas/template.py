from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

DAY_VALUES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_WORKING_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def normalize_day(value: str) -> str:
    day = value.strip().lower()
    if day not in DAY_VALUES:
        raise ValueError(f"Invalid day value: {value}")
    return day


class PeriodTiming(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    period: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    is_break: bool = False
    break_duration: int = Field(default=0, ge=0, le=120)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "PeriodTiming":
        if self.start_time and self.end_time:
            if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
                raise ValueError("end_time must be after start_time")
        return self


class Guidelines(BaseModel):
    minimize_consecutive_faculty_periods: bool = True
    labs_once_a_week: bool = True
    sports_last_period_predefined_day: str = ""
    # Lab contiguity is always enforced; the flag is kept for stored templates.
    no_breaks_during_labs: bool = True
    max_periods_per_faculty_per_day: int | None = Field(default=None, ge=1, le=24)
    preferred_lab_days: list[str] = Field(default_factory=list)
    avoid_first_period_labs: bool = False
    lunch_break_period: int | None = Field(default=None, ge=1)

    @field_validator("sports_last_period_predefined_day")
    @classmethod
    def validate_sports_day(cls, value: str | None) -> str:
        if not value or not value.strip():
            return ""
        return normalize_day(value)

    @field_validator("preferred_lab_days")
    @classmethod
    def validate_preferred_days(cls, value: list[str]) -> list[str]:
        unique: list[str] = []
        for item in value:
            day = normalize_day(item)
            if day not in unique:
                unique.append(day)
        return unique


class TemplateConfig(BaseModel):
    periods_per_day: int
    working_days: list[str] = Field(default_factory=lambda: list(DEFAULT_WORKING_DAYS))
    period_timings: list[PeriodTiming] = Field(default_factory=list)
    guidelines: Guidelines = Field(default_factory=Guidelines)

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: list[str]) -> list[str]:
        # Duplicates are kept so the grid builder can report them.
        return [normalize_day(item) for item in value]


class TemplateCreate(TemplateConfig):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    periods_per_day: int = Field(default=8, ge=1, le=12)
    is_public: bool = False


class TemplateOut(TemplateCreate):
    id: str
    usage_count: int = 0
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
