from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import ResourceNotFoundError
from app.models.classroom import Classroom
from app.models.course import Course, CourseSection
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.schedule import Schedule
from app.models.user import User
from app.schemas.schedule import ClassroomUtilizationOut, DepartmentScheduleOut, ScheduleOut
from app.services.scheduling.conflicts import DAY_ORDER, overlaps, parse_time_to_minutes
from app.services.scheduling.publisher import list_active
from app.services.scheduling.slots import slot_catalog_from_settings

UNASSIGNED_DEPARTMENT = "Unassigned"


def build_schedule_views(db: Session, rows: list[Schedule]) -> list[ScheduleOut]:
    section_ids = {row.section_id for row in rows}
    classroom_ids = {row.classroom_id for row in rows}
    sections = (
        {item.id: item for item in db.execute(select(CourseSection).where(CourseSection.id.in_(section_ids))).scalars()}
        if section_ids
        else {}
    )
    course_ids = {item.course_id for item in sections.values()}
    courses = (
        {item.id: item for item in db.execute(select(Course).where(Course.id.in_(course_ids))).scalars()}
        if course_ids
        else {}
    )
    classrooms = (
        {item.id: item for item in db.execute(select(Classroom).where(Classroom.id.in_(classroom_ids))).scalars()}
        if classroom_ids
        else {}
    )

    views: list[ScheduleOut] = []
    for row in rows:
        view = ScheduleOut.model_validate(row)
        section = sections.get(row.section_id)
        if section is not None:
            view.section_number = section.section_number
            view.instructor_id = section.instructor_id
            course = courses.get(section.course_id)
            if course is not None:
                view.course_id = course.id
                view.course_code = course.code
                view.course_name = course.name
                view.department = course.department
        classroom = classrooms.get(row.classroom_id)
        if classroom is not None:
            view.classroom_code = classroom.code
            view.building = classroom.building
        views.append(view)
    return views


def get_schedule_detail(db: Session, schedule_id: str) -> ScheduleOut:
    row = db.get(Schedule, schedule_id)
    if row is None:
        raise ResourceNotFoundError("Schedule", schedule_id)
    return build_schedule_views(db, [row])[0]


def my_schedule(
    db: Session,
    *,
    user: User,
    semester: str | None = None,
    year: int | None = None,
) -> list[ScheduleOut]:
    if user.attends_sections:
        section_ids = set(
            db.execute(
                select(Enrollment.section_id).where(
                    Enrollment.student_id == user.id,
                    Enrollment.status == EnrollmentStatus.enrolled,
                )
            ).scalars()
        )
    elif user.teaches_sections:
        section_ids = set(
            db.execute(select(CourseSection.id).where(CourseSection.instructor_id == user.id)).scalars()
        )
    else:
        return []

    if not section_ids:
        return []
    rows = [row for row in list_active(db, semester=semester, year=year) if row.section_id in section_ids]
    return build_schedule_views(db, rows)


def classroom_utilization(
    db: Session,
    *,
    semester: str | None = None,
    year: int | None = None,
    settings: Settings | None = None,
) -> list[ClassroomUtilizationOut]:
    settings = settings or get_settings()
    weekly_minutes = sum(slot.duration_minutes for slot in slot_catalog_from_settings(settings))

    rows = list_active(db, semester=semester, year=year)
    term_count = max(1, len({(row.semester, row.year) for row in rows}))
    available = weekly_minutes * term_count

    booked: dict[str, int] = defaultdict(int)
    sessions: dict[str, int] = defaultdict(int)
    for row in rows:
        booked[row.classroom_id] += parse_time_to_minutes(row.end_time) - parse_time_to_minutes(row.start_time)
        sessions[row.classroom_id] += 1

    report: list[ClassroomUtilizationOut] = []
    for classroom in db.execute(select(Classroom).order_by(Classroom.code)).scalars():
        minutes = booked.get(classroom.id, 0)
        percent = round(min(100.0, minutes * 100 / available), 1) if available else 0.0
        report.append(
            ClassroomUtilizationOut(
                classroom_id=classroom.id,
                code=classroom.code,
                building=classroom.building,
                capacity=classroom.capacity,
                session_count=sessions.get(classroom.id, 0),
                booked_minutes=minutes,
                available_minutes=available,
                utilization_percent=percent,
            )
        )
    return report


def department_schedules(
    db: Session,
    *,
    department: str | None = None,
    semester: str | None = None,
    year: int | None = None,
) -> list[DepartmentScheduleOut]:
    views = build_schedule_views(db, list_active(db, semester=semester, year=year))
    grouped: dict[str, list[ScheduleOut]] = defaultdict(list)
    for view in views:
        grouped[view.department or UNASSIGNED_DEPARTMENT].append(view)

    if department is not None:
        wanted = department.strip().lower()
        grouped = {key: value for key, value in grouped.items() if key.lower() == wanted}

    return [
        DepartmentScheduleOut(department=name, schedule_count=len(items), schedules=items)
        for name, items in sorted(grouped.items())
    ]


def _escape_ical_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _first_occurrence(anchor: date, day_name: str) -> date:
    offset = (DAY_ORDER.index(day_name) - anchor.weekday()) % 7
    return anchor + timedelta(days=offset)


def _ical_datetime(day: date, time_value: str) -> str:
    hours, minutes = time_value.split(":")
    return f"{day.strftime('%Y%m%d')}T{hours}{minutes}00"


def export_ical(
    schedules: list[ScheduleOut],
    *,
    calendar_name: str,
    anchor: date | None = None,
    weeks: int | None = None,
) -> str:
    """Render approved sessions as an iCalendar feed with one weekly recurring event per session.

    Times are floating (no TZID) so calendar clients show them in campus-local time.
    """
    anchor = anchor or date.today()
    weeks = weeks or get_settings().calendar_weeks
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Campus Timetable//Schedule Export//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{_escape_ical_text(calendar_name)}",
    ]
    for item in schedules:
        first_day = _first_occurrence(anchor, item.day_of_week)
        title = " ".join(part for part in (item.course_code, item.course_name) if part) or "Class session"
        location = " ".join(part for part in (item.building, item.classroom_code) if part)
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:{item.id}@campus-timetable",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{_ical_datetime(first_day, item.start_time)}",
                f"DTEND:{_ical_datetime(first_day, item.end_time)}",
                f"RRULE:FREQ=WEEKLY;COUNT={weeks}",
                f"SUMMARY:{_escape_ical_text(title)}",
            ]
        )
        if location:
            lines.append(f"LOCATION:{_escape_ical_text(location)}")
        lines.append(f"DESCRIPTION:{_escape_ical_text(f'{item.semester} {item.year} section {item.section_number or 1}')}")
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def check_overlap(
    day_a: str,
    start_a: str,
    end_a: str,
    day_b: str,
    start_b: str,
    end_b: str,
) -> bool:
    return overlaps(day_a, start_a, end_a, day_b, start_b, end_b)
