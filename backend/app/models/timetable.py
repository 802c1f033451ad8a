import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        UniqueConstraint("class_id", "academic_year", name="uq_timetables_class_year"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    template_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    periods_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    working_days: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    period_timings: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    guidelines: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_generated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ClassAssignment(Base):
    __tablename__ = "class_assignments"
    __table_args__ = (
        UniqueConstraint("timetable_id", "subject_id", "faculty_id", name="uq_class_assignments_identity"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False)
    weekly_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
