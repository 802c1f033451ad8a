from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class FacultyBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    employee_code: str = Field(min_length=1, max_length=50)
    department: str = Field(default="General", min_length=1, max_length=200)

    @field_validator("employee_code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class FacultyCreate(FacultyBase):
    pass


class FacultyOut(FacultyBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
