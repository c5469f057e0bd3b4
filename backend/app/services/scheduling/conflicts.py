"""Time-overlap checks shared by the timetable solver and the enrollment service.

Intervals are half-open: a session ending at 10:00 does not clash with one
starting at 10:00 on the same day.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
import re

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DAY_ORDER = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}


def normalize_day(value: str) -> str:
    day = value.strip()
    day = DAY_SHORT_MAP.get(day, day)
    if day not in DAY_ORDER:
        raise ValueError(f"Invalid day value: {value}")
    return day


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def _as_minutes(value: str | int) -> int:
    if isinstance(value, int):
        return value
    return parse_time_to_minutes(value)


def time_ranges_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return max(start_a, start_b) < min(end_a, end_b)


def overlaps(
    day_a: str,
    start_a: str | int,
    end_a: str | int,
    day_b: str,
    start_b: str | int,
    end_b: str | int,
) -> bool:
    if normalize_day(day_a) != normalize_day(day_b):
        return False
    return time_ranges_overlap(_as_minutes(start_a), _as_minutes(end_a), _as_minutes(start_b), _as_minutes(end_b))


@dataclass(frozen=True)
class Assignment:
    """One section placed in a classroom at a weekly time block."""

    section_id: str
    classroom_id: str
    instructor_id: str | None
    day: str
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    def overlaps(self, other: "Assignment") -> bool:
        return self.day == other.day and time_ranges_overlap(self.start, self.end, other.start, other.end)


def conflicts_with_classroom(candidate: Assignment, committed: Iterable[Assignment]) -> bool:
    return any(
        item.classroom_id == candidate.classroom_id and item.overlaps(candidate)
        for item in committed
    )


def conflicts_with_instructor(candidate: Assignment, committed: Iterable[Assignment]) -> bool:
    # Sections without an assigned instructor never clash on the instructor axis.
    if candidate.instructor_id is None:
        return False
    return any(
        item.instructor_id == candidate.instructor_id and item.overlaps(candidate)
        for item in committed
    )


@dataclass(frozen=True)
class AssignmentConflict:
    conflict_type: str
    resource_id: str
    first_section_id: str
    second_section_id: str
    day: str
    start_time: str
    end_time: str


def find_conflicts(assignments: Iterable[Assignment]) -> list[AssignmentConflict]:
    by_day: dict[str, list[Assignment]] = defaultdict(list)
    for item in assignments:
        by_day[item.day].append(item)

    conflicts: list[AssignmentConflict] = []
    for day in sorted(by_day, key=DAY_ORDER.index):
        day_items = sorted(by_day[day], key=lambda item: (item.start, item.end, item.section_id))
        for index, first in enumerate(day_items):
            for second in day_items[index + 1:]:
                if second.start >= first.end:
                    break
                if first.classroom_id == second.classroom_id:
                    conflicts.append(
                        AssignmentConflict(
                            conflict_type="classroom_conflict",
                            resource_id=first.classroom_id,
                            first_section_id=first.section_id,
                            second_section_id=second.section_id,
                            day=day,
                            start_time=second.start_time,
                            end_time=minutes_to_time(min(first.end, second.end)),
                        )
                    )
                if first.instructor_id is not None and first.instructor_id == second.instructor_id:
                    conflicts.append(
                        AssignmentConflict(
                            conflict_type="instructor_conflict",
                            resource_id=first.instructor_id,
                            first_section_id=first.section_id,
                            second_section_id=second.section_id,
                            day=day,
                            start_time=second.start_time,
                            end_time=minutes_to_time(min(first.end, second.end)),
                        )
                    )
    return conflicts
