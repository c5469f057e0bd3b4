"""Checks that catalog edits keep the approved timetable valid.

Approved rows only store section and classroom ids, so capacity, room type and
instructor are resolved through the catalog at read time. Editing a classroom
or section in place can therefore invalidate a published timetable without
touching a single schedule row. The functions here list the violations an edit
would introduce; routes refuse the edit when the list is not empty.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.classroom import Classroom, RoomType
from app.models.course import Course, CourseSection
from app.models.schedule import Schedule, ScheduleStatus
from app.services.scheduling.conflicts import find_conflicts
from app.services.scheduling.publisher import rows_to_assignments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimetableViolation:
    reason: str
    schedule_id: str
    section_id: str
    classroom_id: str
    message: str


def _approved_rows(db: Session, **filters: object) -> list[Schedule]:
    statement = select(Schedule).where(Schedule.status == ScheduleStatus.approved)
    for key, value in filters.items():
        statement = statement.where(getattr(Schedule, key) == value)
    return list(db.execute(statement).scalars())


def classroom_edit_violations(
    db: Session,
    classroom: Classroom,
    *,
    capacity: int,
    room_type: RoomType,
) -> list[TimetableViolation]:
    if capacity >= classroom.capacity and room_type == classroom.type:
        return []
    rows = _approved_rows(db, classroom_id=classroom.id)
    if not rows:
        return []

    sections = {
        item.id: item
        for item in db.execute(
            select(CourseSection).where(CourseSection.id.in_({row.section_id for row in rows}))
        ).scalars()
    }
    required_types = dict(
        db.execute(
            select(Course.id, Course.required_room_type).where(
                Course.id.in_({item.course_id for item in sections.values()})
            )
        ).all()
    )

    violations: list[TimetableViolation] = []
    for row in rows:
        section = sections.get(row.section_id)
        if section is None:
            continue
        if section.capacity > capacity:
            violations.append(
                TimetableViolation(
                    reason="capacity",
                    schedule_id=row.id,
                    section_id=section.id,
                    classroom_id=classroom.id,
                    message=f"Approved section needs {section.capacity} seats but the classroom would hold {capacity}",
                )
            )
        required = required_types.get(section.course_id)
        if required is not None and required != room_type:
            violations.append(
                TimetableViolation(
                    reason="room_type",
                    schedule_id=row.id,
                    section_id=section.id,
                    classroom_id=classroom.id,
                    message=f"Approved section requires a {required.value} room",
                )
            )
    if violations:
        logger.warning(
            "CLASSROOM EDIT REFUSED | classroom_id=%s | violations=%s",
            classroom.id,
            ",".join(sorted({item.reason for item in violations})),
        )
    return violations


def section_edit_violations(
    db: Session,
    section: CourseSection,
    *,
    capacity: int,
    instructor_id: str | None,
) -> list[TimetableViolation]:
    rows = _approved_rows(db, section_id=section.id)
    if not rows:
        return []

    violations: list[TimetableViolation] = []
    if capacity > section.capacity:
        classrooms = {
            item.id: item
            for item in db.execute(
                select(Classroom).where(Classroom.id.in_({row.classroom_id for row in rows}))
            ).scalars()
        }
        for row in rows:
            classroom = classrooms.get(row.classroom_id)
            if classroom is not None and capacity > classroom.capacity:
                violations.append(
                    TimetableViolation(
                        reason="capacity",
                        schedule_id=row.id,
                        section_id=section.id,
                        classroom_id=classroom.id,
                        message=f"Approved classroom {classroom.code} holds {classroom.capacity} seats",
                    )
                )

    if instructor_id is not None and instructor_id != section.instructor_id:
        term_rows = _approved_rows(db, semester=section.semester, year=section.year)
        assignments = rows_to_assignments(db, term_rows, instructor_overrides={section.id: instructor_id})
        by_id = {row.section_id: row for row in rows}
        for clash in find_conflicts(assignments):
            if clash.conflict_type != "instructor_conflict" or section.id not in (clash.first_section_id, clash.second_section_id):
                continue
            row = by_id[section.id]
            other = clash.second_section_id if clash.first_section_id == section.id else clash.first_section_id
            violations.append(
                TimetableViolation(
                    reason="instructor",
                    schedule_id=row.id,
                    section_id=section.id,
                    classroom_id=row.classroom_id,
                    message=f"Instructor already teaches section {other} on {clash.day} at {clash.start_time}",
                )
            )

    if violations:
        logger.warning(
            "SECTION EDIT REFUSED | section_id=%s | violations=%s",
            section.id,
            ",".join(sorted({item.reason for item in violations})),
        )
    return violations
