from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.schedule import ScheduleStatus
from app.services.scheduling.conflicts import TIME_PATTERN, normalize_day, parse_time_to_minutes


class GenerateScheduleRequest(BaseModel):
    # Left optional so a missing term surfaces as a 400 from the publisher rather than a 422.
    semester: str | None = Field(default=None, max_length=20)
    year: int | None = None
    clear_existing: bool = Field(default=False, alias="clearExisting")

    model_config = ConfigDict(populate_by_name=True)


class GenerateScheduleResponse(BaseModel):
    success: bool = True
    batch_id: str
    status: ScheduleStatus
    semester: str
    year: int
    scheduled_count: int
    unplaced_section_ids: list[str] = Field(default_factory=list)
    cleared_drafts: int = 0
    exhausted: bool = False
    steps: int = 0
    runtime_ms: int = 0
    message: str


class ApproveScheduleRequest(BaseModel):
    archive_existing: bool = Field(default=True, alias="archiveExisting")

    model_config = ConfigDict(populate_by_name=True)


class ApproveScheduleResponse(BaseModel):
    success: bool = True
    batch_id: str
    semester: str
    year: int
    approved_count: int
    archived_count: int
    approved_at: datetime


class RejectScheduleResponse(BaseModel):
    success: bool = True
    batch_id: str
    semester: str
    year: int
    deleted_count: int


class ScheduleOut(BaseModel):
    id: str
    section_id: str
    classroom_id: str
    semester: str
    year: int
    day_of_week: str
    start_time: str
    end_time: str
    status: ScheduleStatus
    batch_id: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None

    course_id: str | None = None
    course_code: str | None = None
    course_name: str | None = None
    department: str | None = None
    section_number: int | None = None
    instructor_id: str | None = None
    classroom_code: str | None = None
    building: str | None = None

    model_config = {"from_attributes": True}


class DraftBatchOut(BaseModel):
    batch_id: str
    semester: str
    year: int
    schedule_count: int
    created_at: datetime | None = None
    schedules: list[ScheduleOut] = Field(default_factory=list)


class ClassroomUtilizationOut(BaseModel):
    classroom_id: str
    code: str
    building: str
    capacity: int
    session_count: int
    booked_minutes: int
    available_minutes: int
    utilization_percent: float = Field(ge=0, le=100)


class DepartmentScheduleOut(BaseModel):
    department: str
    schedule_count: int
    schedules: list[ScheduleOut] = Field(default_factory=list)


class OverlapCheckRequest(BaseModel):
    day_a: str
    start_a: str
    end_a: str
    day_b: str
    start_b: str
    end_b: str

    @field_validator("day_a", "day_b")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day(value)

    @field_validator("start_a", "end_a", "start_b", "end_b")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "OverlapCheckRequest":
        if parse_time_to_minutes(self.end_a) <= parse_time_to_minutes(self.start_a):
            raise ValueError("end_a must be after start_a")
        if parse_time_to_minutes(self.end_b) <= parse_time_to_minutes(self.start_b):
            raise ValueError("end_b must be after start_b")
        return self


class OverlapCheckResponse(BaseModel):
    overlaps: bool
