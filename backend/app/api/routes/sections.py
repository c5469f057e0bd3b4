from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.models.course import Course, CourseSection
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.schedule import Schedule, ScheduleStatus
from app.models.user import User, UserRole
from app.schemas.course import SectionCreate, SectionOut, SectionUpdate
from app.schemas.enrollment import EnrollmentCreate, EnrollmentOut, EnrollmentUpdate
from app.services.scheduling.integrity import section_edit_violations

router = APIRouter()
enrollments_router = APIRouter()


def _require_instructor(db: Session, instructor_id: str | None) -> None:
    if instructor_id is None:
        return
    instructor = db.get(User, instructor_id)
    if instructor is None or not instructor.teaches_sections:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="instructor_id must reference a faculty user")


def _refresh_enrolled_count(db: Session, section: CourseSection) -> None:
    section.enrolled_count = db.execute(
        select(func.count(Enrollment.id)).where(
            Enrollment.section_id == section.id,
            Enrollment.status == EnrollmentStatus.enrolled,
        )
    ).scalar_one()


@router.get("/", response_model=list[SectionOut])
def list_sections(
    semester: str | None = None,
    year: int | None = None,
    course_id: str | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SectionOut]:
    statement = select(CourseSection).order_by(CourseSection.year, CourseSection.semester, CourseSection.id)
    if semester:
        statement = statement.where(CourseSection.semester == semester.strip())
    if year is not None:
        statement = statement.where(CourseSection.year == year)
    if course_id:
        statement = statement.where(CourseSection.course_id == course_id)
    return list(db.execute(statement).scalars())


@router.get("/{section_id}", response_model=SectionOut)
def get_section(section_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> SectionOut:
    section = db.get(CourseSection, section_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    return section


@router.post("/", response_model=SectionOut, status_code=status.HTTP_201_CREATED)
def create_section(
    payload: SectionCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SectionOut:
    if db.get(Course, payload.course_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    _require_instructor(db, payload.instructor_id)

    section = CourseSection(**payload.model_dump())
    db.add(section)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Section number already exists for this course and term",
        ) from exc
    db.refresh(section)
    return section


@router.put("/{section_id}", response_model=SectionOut)
def update_section(
    section_id: str,
    payload: SectionUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SectionOut:
    section = db.get(CourseSection, section_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")

    data = payload.model_dump(exclude_unset=True)
    if "instructor_id" in data:
        _require_instructor(db, data["instructor_id"])
    capacity = data.get("capacity") or section.capacity
    enrolled = data.get("enrolled_count", section.enrolled_count)
    if enrolled > capacity:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="enrolled_count cannot exceed capacity")

    violations = section_edit_violations(
        db,
        section,
        capacity=capacity,
        instructor_id=data.get("instructor_id", section.instructor_id),
    )
    if violations:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Section is scheduled in the approved timetable: {violations[0].message}",
        )

    for key, value in data.items():
        setattr(section, key, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Section number already exists for this course and term",
        ) from exc
    db.refresh(section)
    return section


@router.delete("/{section_id}")
def delete_section(
    section_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    section = db.get(CourseSection, section_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    approved = db.execute(
        select(Schedule.id).where(Schedule.section_id == section_id, Schedule.status == ScheduleStatus.approved).limit(1)
    ).first()
    if approved is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Section has an approved schedule")

    db.execute(delete(Schedule).where(Schedule.section_id == section_id, Schedule.status == ScheduleStatus.draft))
    db.execute(delete(Enrollment).where(Enrollment.section_id == section_id))
    db.delete(section)
    db.commit()
    return {"success": True}


@enrollments_router.get("/", response_model=list[EnrollmentOut])
def list_enrollments(
    section_id: str | None = None,
    student_id: str | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[EnrollmentOut]:
    statement = select(Enrollment).order_by(Enrollment.created_at, Enrollment.id)
    if current_user.attends_sections:
        statement = statement.where(Enrollment.student_id == current_user.id)
    elif student_id:
        statement = statement.where(Enrollment.student_id == student_id)
    if section_id:
        statement = statement.where(Enrollment.section_id == section_id)
    return list(db.execute(statement).scalars())


@enrollments_router.post("/", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
def create_enrollment(
    payload: EnrollmentCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.staff)),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    student = db.get(User, payload.student_id)
    if student is None or not student.attends_sections:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="student_id must reference a student user")
    section = db.get(CourseSection, payload.section_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")

    existing = db.execute(
        select(Enrollment).where(
            Enrollment.student_id == payload.student_id,
            Enrollment.section_id == payload.section_id,
        )
    ).scalar_one_or_none()
    if existing is not None and existing.status == EnrollmentStatus.enrolled:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Student already enrolled in this section")
    if section.enrolled_count >= section.capacity:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Section is full")

    if existing is None:
        existing = Enrollment(student_id=payload.student_id, section_id=payload.section_id)
        db.add(existing)
    existing.status = EnrollmentStatus.enrolled
    db.flush()
    _refresh_enrolled_count(db, section)
    db.commit()
    db.refresh(existing)
    return existing


@enrollments_router.put("/{enrollment_id}", response_model=EnrollmentOut)
def update_enrollment(
    enrollment_id: str,
    payload: EnrollmentUpdate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.staff)),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found")
    section = db.get(CourseSection, enrollment.section_id)
    if (
        section is not None
        and payload.status == EnrollmentStatus.enrolled
        and enrollment.status != EnrollmentStatus.enrolled
        and section.enrolled_count >= section.capacity
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Section is full")

    enrollment.status = payload.status
    db.flush()
    if section is not None:
        _refresh_enrolled_count(db, section)
    db.commit()
    db.refresh(enrollment)
    return enrollment


@enrollments_router.delete("/{enrollment_id}")
def delete_enrollment(
    enrollment_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.staff)),
    db: Session = Depends(get_db),
) -> dict:
    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found")
    section = db.get(CourseSection, enrollment.section_id)
    db.delete(enrollment)
    db.flush()
    if section is not None:
        _refresh_enrolled_count(db, section)
    db.commit()
    return {"success": True}
