from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.models.classroom import RoomType
from app.services.scheduling.conflicts import (
    DAY_ORDER,
    minutes_to_time,
    normalize_day,
    parse_time_to_minutes,
)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Slot:
    day: str
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def sort_key(self) -> tuple[int, int]:
        return DAY_ORDER.index(self.day), self.start


@dataclass(frozen=True)
class SectionRequest:
    section_id: str
    instructor_id: str | None
    capacity: int
    room_type: RoomType | None = None
    label: str | None = None


@dataclass(frozen=True)
class ClassroomResource:
    classroom_id: str
    code: str
    capacity: int
    room_type: RoomType


@dataclass(frozen=True)
class Candidate:
    classroom: ClassroomResource
    slot: Slot


def build_slot_catalog(
    days: Iterable[str],
    block_starts: Iterable[str],
    block_minutes: int,
) -> tuple[Slot, ...]:
    if block_minutes <= 0:
        raise ConfigurationError("schedule_block_minutes must be positive")
    try:
        normalized_days = sorted({normalize_day(day) for day in days}, key=DAY_ORDER.index)
        starts = sorted({parse_time_to_minutes(value.strip()) for value in block_starts})
    except ValueError as exc:
        raise ConfigurationError(f"Invalid slot catalog configuration: {exc}") from exc

    if not normalized_days:
        raise ConfigurationError("At least one scheduling day must be configured")
    if not starts:
        raise ConfigurationError("At least one block start time must be configured")

    previous_end: int | None = None
    for start in starts:
        end = start + block_minutes
        if end > MINUTES_PER_DAY:
            raise ConfigurationError(f"Block starting at {minutes_to_time(start)} runs past midnight")
        if previous_end is not None and start < previous_end:
            raise ConfigurationError(
                f"Block starting at {minutes_to_time(start)} overlaps the previous block"
            )
        previous_end = end

    return tuple(
        Slot(day=day, start=start, end=start + block_minutes)
        for day in normalized_days
        for start in starts
    )


def slot_catalog_from_settings(settings: Settings) -> tuple[Slot, ...]:
    return build_slot_catalog(
        settings.schedule_days,
        settings.schedule_block_starts,
        settings.schedule_block_minutes,
    )


def classroom_fits(section: SectionRequest, classroom: ClassroomResource) -> bool:
    if classroom.capacity < section.capacity:
        return False
    if section.room_type is not None and classroom.room_type != section.room_type:
        return False
    return True


def candidates_for(
    section: SectionRequest,
    classrooms: Sequence[ClassroomResource],
    catalog: Sequence[Slot],
) -> list[Candidate]:
    """Return every usable (classroom, slot) pair for a section.

    Classrooms are ranked by tightest capacity fit so large rooms stay free for
    large sections; ties fall back to the classroom code and then the slot's
    position in the week, which keeps generation reproducible.
    """
    fitting = sorted(
        (item for item in classrooms if classroom_fits(section, item)),
        key=lambda item: (item.capacity - section.capacity, item.code, item.classroom_id),
    )
    ordered_slots = sorted(catalog, key=Slot.sort_key)
    return [Candidate(classroom=room, slot=slot) for room in fitting for slot in ordered_slots]
