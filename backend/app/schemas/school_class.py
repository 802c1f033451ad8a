from datetime import datetime

from pydantic import BaseModel, Field


class SchoolClassBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    branch: str = Field(min_length=1, max_length=50)
    year: int = Field(default=1, ge=1, le=10)
    class_teacher_id: str | None = Field(default=None, max_length=36)


class SchoolClassCreate(SchoolClassBase):
    pass


class SchoolClassOut(SchoolClassBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
