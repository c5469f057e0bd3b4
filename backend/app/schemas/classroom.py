from pydantic import BaseModel, Field, field_validator

from app.models.classroom import RoomType


class ClassroomBase(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    building: str = Field(min_length=1, max_length=200)
    room_number: str | None = Field(default=None, max_length=20)
    capacity: int = Field(ge=1, le=1000)
    type: RoomType = RoomType.lecture

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        trimmed = value.strip().upper()
        if not trimmed:
            raise ValueError("Classroom code cannot be empty")
        return trimmed


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    building: str | None = Field(default=None, min_length=1, max_length=200)
    room_number: str | None = Field(default=None, max_length=20)
    capacity: int | None = Field(default=None, ge=1, le=1000)
    type: RoomType | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().upper() or None


class ClassroomOut(ClassroomBase):
    id: str

    model_config = {"from_attributes": True}
