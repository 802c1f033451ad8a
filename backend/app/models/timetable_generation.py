from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class TimetableGenerationSettings(Base):
    __tablename__ = "timetable_generation_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=20_000)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class GenerationScope(str, Enum):
    single = "single"
    all = "all"


class TimetableGenerationRun(Base):
    __tablename__ = "timetable_generation_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    scope: Mapped[GenerationScope] = mapped_column(
        SAEnum(GenerationScope, name="generation_scope"),
        nullable=False,
        index=True,
    )
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    committed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    runtime_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    results: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
