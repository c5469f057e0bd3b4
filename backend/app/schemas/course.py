from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.classroom import RoomType


class CourseBase(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    credits: int = Field(default=3, ge=0, le=40)
    department: str | None = Field(default=None, max_length=200)
    required_room_type: RoomType | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        trimmed = value.strip().upper()
        if not trimmed:
            raise ValueError("Course code cannot be empty")
        return trimmed

    @field_validator("department")
    @classmethod
    def normalize_department(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class CourseCreate(CourseBase):
    pass


class CourseUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    credits: int | None = Field(default=None, ge=0, le=40)
    department: str | None = Field(default=None, max_length=200)
    required_room_type: RoomType | None = None


class CourseOut(CourseBase):
    id: str

    model_config = {"from_attributes": True}


class SectionBase(BaseModel):
    course_id: str = Field(min_length=1, max_length=36)
    section_number: int = Field(default=1, ge=1, le=99)
    semester: str = Field(min_length=1, max_length=20)
    year: int = Field(ge=2000, le=2100)
    instructor_id: str | None = Field(default=None, max_length=36)
    capacity: int = Field(ge=1, le=1000)
    enrolled_count: int = Field(default=0, ge=0)

    @field_validator("semester")
    @classmethod
    def normalize_semester(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Semester cannot be empty")
        return trimmed

    @model_validator(mode="after")
    def validate_enrollment_within_capacity(self) -> "SectionBase":
        if self.enrolled_count > self.capacity:
            raise ValueError("enrolled_count cannot exceed capacity")
        return self


class SectionCreate(SectionBase):
    pass


class SectionUpdate(BaseModel):
    section_number: int | None = Field(default=None, ge=1, le=99)
    instructor_id: str | None = Field(default=None, max_length=36)
    capacity: int | None = Field(default=None, ge=1, le=1000)
    enrolled_count: int | None = Field(default=None, ge=0)


class SectionOut(SectionBase):
    id: str

    model_config = {"from_attributes": True}
