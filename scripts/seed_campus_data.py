"""Seed a small campus term for local development.

Run:
  PYTHONPATH=backend python scripts/seed_campus_data.py
"""

from __future__ import annotations

import os

from sqlalchemy import func, select

from app.core.security import get_password_hash
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.classroom import Classroom, RoomType
from app.models.course import Course, CourseSection
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.user import User, UserRole

DEFAULT_PASSWORD = os.getenv("SEED_DEFAULT_PASSWORD", "Timetable123!")
EMAIL_DOMAIN = os.getenv("SEED_EMAIL_DOMAIN", "campus.edu").strip().lower() or "campus.edu"
SEMESTER = os.getenv("SEED_SEMESTER", "Fall").strip() or "Fall"
YEAR = int(os.getenv("SEED_YEAR", "2025"))

CLASSROOMS = [
    ("MAIN-101", "Main Hall", "101", 120, RoomType.lecture),
    ("MAIN-204", "Main Hall", "204", 60, RoomType.lecture),
    ("MAIN-210", "Main Hall", "210", 35, RoomType.lecture),
    ("SCI-B12", "Science Block", "B12", 30, RoomType.lab),
    ("SCI-B14", "Science Block", "B14", 24, RoomType.lab),
    ("ART-3", "Arts Centre", "3", 20, RoomType.studio),
]

# code, name, department, required room type, section capacities
COURSES = [
    ("CS101", "Introduction to Programming", "Computer Science", None, [90, 45]),
    ("CS210", "Data Structures", "Computer Science", None, [55]),
    ("CS215", "Systems Lab", "Computer Science", RoomType.lab, [24, 24]),
    ("MATH120", "Calculus I", "Mathematics", None, [110, 35]),
    ("CHEM110", "General Chemistry Lab", "Chemistry", RoomType.lab, [30]),
    ("ART140", "Foundations of Drawing", "Art", RoomType.studio, [18]),
]

FACULTY = [
    ("Dr. Priya Raman", "Computer Science"),
    ("Dr. Tomas Novak", "Computer Science"),
    ("Dr. Helen Okafor", "Mathematics"),
    ("Dr. Li Wei", "Chemistry"),
    ("Prof. Maya Torres", "Art"),
]

STUDENTS = [
    ("Arjun Mehta", "Computer Science"),
    ("Chloe Martin", "Mathematics"),
    ("Samuel Osei", "Chemistry"),
]


def email_for(name: str) -> str:
    local = "".join(ch for ch in name.lower().replace("dr. ", "").replace("prof. ", "") if ch.isalnum() or ch == " ")
    return f"{'.'.join(local.split())}@{EMAIL_DOMAIN}"


def upsert_user(session, *, name: str, email: str, role: UserRole, department: str | None) -> User:
    existing = session.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()
    if existing is None:
        existing = User(
            name=name,
            email=email.lower(),
            hashed_password=get_password_hash(DEFAULT_PASSWORD),
            role=role,
            department=department,
            is_active=True,
        )
        session.add(existing)
    else:
        existing.name = name
        existing.role = role
        existing.department = department
        existing.is_active = True
    session.flush()
    return existing


def upsert_classrooms(session) -> None:
    for code, building, room_number, capacity, room_type in CLASSROOMS:
        classroom = session.execute(select(Classroom).where(Classroom.code == code)).scalar_one_or_none()
        if classroom is None:
            classroom = Classroom(code=code)
            session.add(classroom)
        classroom.building = building
        classroom.room_number = room_number
        classroom.capacity = capacity
        classroom.type = room_type
    session.flush()


def upsert_courses_and_sections(session, faculty_by_department: dict[str, list[User]]) -> list[CourseSection]:
    sections: list[CourseSection] = []
    for code, name, department, room_type, capacities in COURSES:
        course = session.execute(select(Course).where(Course.code == code)).scalar_one_or_none()
        if course is None:
            course = Course(code=code)
            session.add(course)
        course.name = name
        course.department = department
        course.required_room_type = room_type
        session.flush()

        instructors = faculty_by_department.get(department, [])
        for index, capacity in enumerate(capacities):
            number = index + 1
            section = session.execute(
                select(CourseSection).where(
                    CourseSection.course_id == course.id,
                    CourseSection.section_number == number,
                    CourseSection.semester == SEMESTER,
                    CourseSection.year == YEAR,
                )
            ).scalar_one_or_none()
            if section is None:
                section = CourseSection(course_id=course.id, section_number=number, semester=SEMESTER, year=YEAR)
                session.add(section)
            section.capacity = capacity
            section.instructor_id = instructors[index % len(instructors)].id if instructors else None
            sections.append(section)
    session.flush()
    return sections


def enroll_students(session, students: list[User], sections: list[CourseSection]) -> None:
    for offset, student in enumerate(students):
        for section in sections[offset::len(students)]:
            existing = session.execute(
                select(Enrollment).where(Enrollment.student_id == student.id, Enrollment.section_id == section.id)
            ).scalar_one_or_none()
            if existing is None:
                session.add(Enrollment(student_id=student.id, section_id=section.id, status=EnrollmentStatus.enrolled))
    session.flush()
    for section in sections:
        section.enrolled_count = session.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.section_id == section.id,
                Enrollment.status == EnrollmentStatus.enrolled,
            )
        ).scalar_one()


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        admin = upsert_user(
            session,
            name="Registrar Admin",
            email=f"registrar@{EMAIL_DOMAIN}",
            role=UserRole.admin,
            department="Administration",
        )
        upsert_user(
            session,
            name="Timetable Staff",
            email=f"timetable@{EMAIL_DOMAIN}",
            role=UserRole.staff,
            department="Administration",
        )
        faculty_by_department: dict[str, list[User]] = {}
        for name, department in FACULTY:
            user = upsert_user(session, name=name, email=email_for(name), role=UserRole.faculty, department=department)
            faculty_by_department.setdefault(department, []).append(user)
        students = [
            upsert_user(session, name=name, email=email_for(name), role=UserRole.student, department=department)
            for name, department in STUDENTS
        ]

        upsert_classrooms(session)
        sections = upsert_courses_and_sections(session, faculty_by_department)
        enroll_students(session, students, sections)
        session.commit()

        classroom_count = session.execute(select(func.count(Classroom.id))).scalar_one()
        section_count = len(sections)
        admin_email = admin.email

    print("Campus data seeded successfully.")
    print("")
    print(f"Term: {SEMESTER} {YEAR}")
    print(f"Classrooms: {classroom_count}")
    print(f"Course sections: {section_count}")
    print("")
    print("Login credentials for seeded users (all use same password):")
    print(f"  Password: {DEFAULT_PASSWORD}")
    print(f"  Admin:    {admin_email}")
    print(f"  Faculty:  {email_for(FACULTY[0][0])}")
    print(f"  Student:  {email_for(STUDENTS[0][0])}")


if __name__ == "__main__":
    main()
