from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enrollment import EnrollmentStatus


class EnrollmentCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    section_id: str = Field(min_length=1, max_length=36)


class EnrollmentUpdate(BaseModel):
    status: EnrollmentStatus


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    section_id: str
    status: EnrollmentStatus
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
