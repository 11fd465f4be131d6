"""Pydantic schemas for the calendar activity log."""
import datetime as dt

from pydantic import BaseModel, Field, field_validator, model_validator

from app.rules.import_rules import VALID_STATUSES


class CalendarEntryCreate(BaseModel):
    task_code: str = Field(min_length=1, max_length=20)
    status_code: str = "P"
    work_description: str = ""
    date: dt.date
    start_time: dt.time
    end_time: dt.time | None = None
    is_parallel: bool = False
    track_number: int = Field(default=1, ge=1)

    @field_validator("task_code")
    @classmethod
    def validate_task_code(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("Task code is required")
        return v

    @field_validator("status_code")
    @classmethod
    def validate_status_code(cls, v):
        if v not in VALID_STATUSES:
            raise ValueError(f"status_code must be one of: {'/'.join(VALID_STATUSES)}")
        return v

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class CalendarEntryOut(BaseModel):
    id: str
    task_code: str
    status_code: str
    work_description: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time | None = None
    is_parallel: bool
    track_number: int
