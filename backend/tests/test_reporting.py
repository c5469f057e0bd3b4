from datetime import date

import pytest

from app.core.config import Settings
from app.core.exceptions import ResourceNotFoundError
from app.models.classroom import Classroom, RoomType
from app.models.course import Course, CourseSection
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.user import User, UserRole
from app.services.scheduling import publisher, reporting

SETTINGS = Settings(database_url="sqlite+pysqlite://")


@pytest.fixture()
def approved_term(db_session):
    instructor = User(name="Dr. Grace", email="grace@campus.edu", hashed_password="x", role=UserRole.faculty)
    other_instructor = User(name="Dr. Alan", email="alan@campus.edu", hashed_password="x", role=UserRole.faculty)
    student = User(name="Sam", email="sam@campus.edu", hashed_password="x", role=UserRole.student)
    dropped = User(name="Dee", email="dee@campus.edu", hashed_password="x", role=UserRole.student)
    staff = User(name="Stan", email="stan@campus.edu", hashed_password="x", role=UserRole.staff)
    db_session.add_all([instructor, other_instructor, student, dropped, staff])
    hall = Classroom(code="HALL-1", building="Main", room_number="101", capacity=50, type=RoomType.lecture)
    lab = Classroom(code="LAB-1", building="Science", room_number="B2", capacity=50, type=RoomType.lab)
    db_session.add_all([hall, lab])
    cs = Course(code="CS101", name="Intro to Computing", department="Computer Science")
    chem = Course(code="CHEM110", name="Lab Chemistry", department="Chemistry", required_room_type=RoomType.lab)
    db_session.add_all([cs, chem])
    db_session.flush()

    cs_section = CourseSection(
        course_id=cs.id, section_number=1, semester="Fall", year=2025, instructor_id=instructor.id, capacity=40
    )
    chem_section = CourseSection(
        course_id=chem.id, section_number=1, semester="Fall", year=2025, instructor_id=other_instructor.id, capacity=20
    )
    db_session.add_all([cs_section, chem_section])
    db_session.flush()
    db_session.add_all(
        [
            Enrollment(student_id=student.id, section_id=cs_section.id, status=EnrollmentStatus.enrolled),
            Enrollment(student_id=dropped.id, section_id=cs_section.id, status=EnrollmentStatus.dropped),
        ]
    )
    db_session.commit()

    outcome = publisher.generate_schedule(db_session, semester="Fall", year=2025, settings=SETTINGS)
    publisher.approve_batch(db_session, batch_id=outcome.batch_id)
    return {
        "instructor": instructor,
        "student": student,
        "dropped": dropped,
        "staff": staff,
        "hall": hall,
        "lab": lab,
        "cs_section": cs_section,
        "chem_section": chem_section,
    }


def test_schedule_views_are_enriched(db_session, approved_term):
    views = reporting.build_schedule_views(db_session, publisher.list_active(db_session))
    by_course = {view.course_code: view for view in views}

    assert set(by_course) == {"CS101", "CHEM110"}
    assert by_course["CHEM110"].classroom_code == "LAB-1"
    assert by_course["CHEM110"].building == "Science"
    assert by_course["CS101"].department == "Computer Science"
    assert by_course["CS101"].instructor_id == approved_term["instructor"].id


def test_schedule_detail_and_missing_id(db_session, approved_term):
    row = publisher.list_active(db_session)[0]
    detail = reporting.get_schedule_detail(db_session, row.id)
    assert detail.id == row.id
    assert detail.course_name is not None

    with pytest.raises(ResourceNotFoundError):
        reporting.get_schedule_detail(db_session, "missing")


def test_my_schedule_by_role(db_session, approved_term):
    student_rows = reporting.my_schedule(db_session, user=approved_term["student"])
    assert [row.section_id for row in student_rows] == [approved_term["cs_section"].id]

    assert reporting.my_schedule(db_session, user=approved_term["dropped"]) == []
    assert reporting.my_schedule(db_session, user=approved_term["staff"]) == []

    instructor_rows = reporting.my_schedule(db_session, user=approved_term["instructor"])
    assert [row.section_id for row in instructor_rows] == [approved_term["cs_section"].id]

    assert reporting.my_schedule(db_session, user=approved_term["student"], semester="Spring") == []


def test_classroom_utilization(db_session, approved_term):
    report = {item.code: item for item in reporting.classroom_utilization(db_session, settings=SETTINGS)}

    weekly_minutes = 5 * 4 * 100
    assert report["HALL-1"].available_minutes == weekly_minutes
    assert report["HALL-1"].session_count == 1
    assert report["HALL-1"].booked_minutes == 100
    assert report["HALL-1"].utilization_percent == 5.0
    assert report["LAB-1"].session_count == 1
    assert all(0 <= item.utilization_percent <= 100 for item in report.values())


def test_classroom_utilization_without_sessions(db_session):
    db_session.add(Classroom(code="EMPTY", building="Annex", capacity=10, type=RoomType.studio))
    db_session.commit()

    report = reporting.classroom_utilization(db_session, settings=SETTINGS)

    assert len(report) == 1
    assert report[0].utilization_percent == 0.0
    assert report[0].booked_minutes == 0


def test_department_schedules(db_session, approved_term):
    groups = reporting.department_schedules(db_session)
    assert [group.department for group in groups] == ["Chemistry", "Computer Science"]
    assert all(group.schedule_count == 1 for group in groups)

    only_cs = reporting.department_schedules(db_session, department="computer science")
    assert len(only_cs) == 1
    assert only_cs[0].schedules[0].course_code == "CS101"

    assert reporting.department_schedules(db_session, department="History") == []


def test_export_ical(db_session, approved_term):
    rows = reporting.my_schedule(db_session, user=approved_term["student"])
    # 2025-09-01 is a Monday.
    body = reporting.export_ical(rows, calendar_name="Sam, Fall", anchor=date(2025, 9, 1), weeks=14)

    lines = body.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "END:VCALENDAR" in lines
    assert body.count("BEGIN:VEVENT") == 1
    assert "RRULE:FREQ=WEEKLY;COUNT=14" in lines
    assert "X-WR-CALNAME:Sam\\, Fall" in lines
    assert "SUMMARY:CS101 Intro to Computing" in lines
    start_line = next(line for line in lines if line.startswith("DTSTART:"))
    assert start_line.startswith("DTSTART:202509")
    assert start_line.endswith("00")


def test_export_ical_with_no_sessions():
    body = reporting.export_ical([], calendar_name="Empty", anchor=date(2025, 9, 1), weeks=2)
    assert body.startswith("BEGIN:VCALENDAR\r\n")
    assert "BEGIN:VEVENT" not in body


def test_check_overlap_passthrough():
    assert reporting.check_overlap("Monday", "09:00", "10:40", "Monday", "10:00", "11:40") is True
    assert reporting.check_overlap("Monday", "09:00", "10:00", "Monday", "10:00", "11:00") is False


def test_inactive_faculty_has_no_personal_timetable(db_session, approved_term):
    instructor = approved_term["instructor"]
    assert instructor.teaches_sections
    instructor.is_active = False
    db_session.commit()

    assert not instructor.teaches_sections
    assert reporting.my_schedule(db_session, user=instructor) == []
    assert not User(name="Visitor", email="v@campus.edu", hashed_password="x", role=UserRole.staff).attends_sections
