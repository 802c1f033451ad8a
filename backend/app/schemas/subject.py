from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class SubjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str | None = Field(default=None, max_length=20)
    is_lab: bool = False
    is_sports: bool = False
    default_duration_periods: int = Field(default=1, ge=1, le=6)

    @model_validator(mode="after")
    def validate_sports_flag(self) -> "SubjectBase":
        if self.is_lab and self.is_sports:
            raise ValueError("A subject cannot be both a lab and a sports period")
        return self


class SubjectCreate(SubjectBase):
    pass


class SubjectOut(SubjectBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
