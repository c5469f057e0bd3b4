from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging
from threading import Lock
from time import perf_counter
import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    ConflictError,
    GenerationInProgressError,
    ResourceNotFoundError,
    TimetableClashError,
    ValidationError,
)
from app.models.classroom import Classroom
from app.models.course import Course, CourseSection
from app.models.schedule import Schedule, ScheduleStatus
from app.models.user import User
from app.services.audit import log_activity
from app.services.scheduling.conflicts import DAY_ORDER, Assignment, find_conflicts, parse_time_to_minutes
from app.services.scheduling.slots import ClassroomResource, SectionRequest, slot_catalog_from_settings
from app.services.scheduling.solver import BacktrackingSolver

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


@dataclass
class GenerationOutcome:
    batch_id: str
    semester: str
    year: int
    scheduled_count: int
    unplaced_section_ids: list[str] = field(default_factory=list)
    cleared_drafts: int = 0
    exhausted: bool = False
    steps: int = 0
    runtime_ms: int = 0
    status: ScheduleStatus = ScheduleStatus.draft


@dataclass
class ApprovalOutcome:
    batch_id: str
    semester: str
    year: int
    approved_count: int
    archived_count: int
    approved_at: datetime


@dataclass
class RejectionOutcome:
    batch_id: str
    semester: str
    year: int
    deleted_count: int


@dataclass
class DraftBatch:
    batch_id: str
    semester: str
    year: int
    created_at: datetime | None
    schedules: list[Schedule] = field(default_factory=list)


_generation_locks: dict[tuple[str, int], Lock] = {}
_generation_locks_guard = Lock()


@contextmanager
def term_generation_guard(semester: str, year: int) -> Iterator[None]:
    """Serialize generation runs per term; different terms never wait on each other."""
    with _generation_locks_guard:
        lock = _generation_locks.setdefault((semester, year), Lock())
    if not lock.acquire(blocking=False):
        raise GenerationInProgressError(semester, year)
    try:
        yield
    finally:
        lock.release()


def validate_term(semester: str | None, year: int | None) -> tuple[str, int]:
    normalized = (semester or "").strip()
    if not normalized:
        raise ValidationError("semester is required", details={"field": "semester"})
    if len(normalized) > 20:
        raise ValidationError("semester cannot exceed 20 characters", details={"field": "semester"})
    if year is None:
        raise ValidationError("year is required", details={"field": "year"})
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(
            f"year must be between {MIN_YEAR} and {MAX_YEAR}",
            details={"field": "year", "value": year},
        )
    return normalized, year


def validate_batch_id(batch_id: str | None) -> str:
    value = (batch_id or "").strip()
    if not value:
        raise ValidationError("batch_id is required", details={"field": "batch_id"})
    try:
        return str(uuid.UUID(value))
    except ValueError as exc:
        raise ValidationError("batch_id must be a UUID", details={"field": "batch_id", "value": value}) from exc


def load_section_requests(db: Session, *, semester: str, year: int) -> list[SectionRequest]:
    sections = list(
        db.execute(
            select(CourseSection)
            .where(CourseSection.semester == semester, CourseSection.year == year)
            .order_by(CourseSection.id)
        ).scalars()
    )
    course_ids = {item.course_id for item in sections}
    courses = (
        {item.id: item for item in db.execute(select(Course).where(Course.id.in_(course_ids))).scalars()}
        if course_ids
        else {}
    )
    requests: list[SectionRequest] = []
    for section in sections:
        course = courses.get(section.course_id)
        requests.append(
            SectionRequest(
                section_id=section.id,
                instructor_id=section.instructor_id,
                capacity=section.capacity,
                room_type=course.required_room_type if course is not None else None,
                label=f"{course.code}-{section.section_number}" if course is not None else None,
            )
        )
    return requests


def load_classroom_resources(db: Session) -> list[ClassroomResource]:
    return [
        ClassroomResource(
            classroom_id=item.id,
            code=item.code,
            capacity=item.capacity,
            room_type=item.type,
        )
        for item in db.execute(select(Classroom).order_by(Classroom.code)).scalars()
    ]


def generate_schedule(
    db: Session,
    *,
    semester: str | None,
    year: int | None,
    clear_existing: bool = False,
    actor: User | None = None,
    settings: Settings | None = None,
) -> GenerationOutcome:
    semester, year = validate_term(semester, year)
    settings = settings or get_settings()
    actor_id = actor.id if actor is not None else None

    started = perf_counter()
    logger.info(
        "SCHEDULE GENERATION START | user_id=%s | semester=%s | year=%s | clear_existing=%s",
        actor_id,
        semester,
        year,
        clear_existing,
    )
    with term_generation_guard(semester, year):
        try:
            sections = load_section_requests(db, semester=semester, year=year)
            classrooms = load_classroom_resources(db)
            solver = BacktrackingSolver(
                sections=sections,
                classrooms=classrooms,
                catalog=slot_catalog_from_settings(settings),
                step_budget=settings.solver_step_budget,
            )
            result = solver.solve()

            cleared = 0
            if clear_existing:
                cleared = db.execute(
                    delete(Schedule).where(
                        Schedule.semester == semester,
                        Schedule.year == year,
                        Schedule.status == ScheduleStatus.draft,
                    )
                ).rowcount or 0

            batch_id = str(uuid.uuid4())
            for assignment in result.assignments:
                db.add(
                    Schedule(
                        section_id=assignment.section_id,
                        classroom_id=assignment.classroom_id,
                        semester=semester,
                        year=year,
                        day_of_week=assignment.day,
                        start_time=assignment.start_time,
                        end_time=assignment.end_time,
                        status=ScheduleStatus.draft,
                        batch_id=batch_id,
                    )
                )

            log_activity(
                db,
                user=actor,
                action="schedule.generate",
                entity_type="schedule_batch",
                entity_id=batch_id,
                details={
                    "semester": semester,
                    "year": year,
                    "scheduled": len(result.assignments),
                    "unplaced": result.unplaced_section_ids,
                    "cleared_drafts": cleared,
                    "exhausted": result.exhausted,
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "SCHEDULE GENERATION FAILED | user_id=%s | semester=%s | year=%s | wall_ms=%s",
                actor_id,
                semester,
                year,
                int((perf_counter() - started) * 1000),
            )
            raise

    if result.unplaced_section_ids:
        logger.warning(
            "SCHEDULE GENERATION PARTIAL | batch_id=%s | semester=%s | year=%s | unplaced=%s | exhausted=%s",
            batch_id,
            semester,
            year,
            len(result.unplaced_section_ids),
            result.exhausted,
        )
    logger.info(
        "SCHEDULE GENERATION COMPLETE | user_id=%s | batch_id=%s | semester=%s | year=%s | scheduled=%s | steps=%s | runtime_ms=%s | wall_ms=%s",
        actor_id,
        batch_id,
        semester,
        year,
        len(result.assignments),
        result.steps,
        result.runtime_ms,
        int((perf_counter() - started) * 1000),
    )
    return GenerationOutcome(
        batch_id=batch_id,
        semester=semester,
        year=year,
        scheduled_count=len(result.assignments),
        unplaced_section_ids=result.unplaced_section_ids,
        cleared_drafts=cleared,
        exhausted=result.exhausted,
        steps=result.steps,
        runtime_ms=result.runtime_ms,
    )


def _load_draft_batch(db: Session, batch_id: str, *, lock: bool = False) -> list[Schedule]:
    statement = select(Schedule).where(
        Schedule.batch_id == batch_id,
        Schedule.status == ScheduleStatus.draft,
    )
    if lock:
        statement = statement.with_for_update()
    rows = list(db.execute(statement).scalars())
    if not rows:
        raise ResourceNotFoundError("Schedule batch", batch_id)
    return rows


def _batch_term(rows: list[Schedule], batch_id: str) -> tuple[str, int]:
    terms = {(row.semester, row.year) for row in rows}
    if len(terms) != 1:
        raise ConflictError(
            "Draft batch spans more than one term",
            details={"batch_id": batch_id, "terms": sorted(f"{semester} {year}" for semester, year in terms)},
        )
    return terms.pop()


def _transition(row: Schedule, target: ScheduleStatus) -> None:
    if not row.status.can_transition_to(target):
        raise ConflictError(
            f"Schedule {row.id} cannot move from {row.status.value} to {target.value}",
            details={"schedule_id": row.id},
        )
    row.status = target


def rows_to_assignments(
    db: Session,
    rows: list[Schedule],
    *,
    instructor_overrides: dict[str, str | None] | None = None,
) -> list[Assignment]:
    section_ids = {row.section_id for row in rows}
    instructors = (
        dict(
            db.execute(
                select(CourseSection.id, CourseSection.instructor_id).where(CourseSection.id.in_(section_ids))
            ).all()
        )
        if section_ids
        else {}
    )
    instructors.update(instructor_overrides or {})
    return [
        Assignment(
            section_id=row.section_id,
            classroom_id=row.classroom_id,
            instructor_id=instructors.get(row.section_id),
            day=row.day_of_week,
            start=parse_time_to_minutes(row.start_time),
            end=parse_time_to_minutes(row.end_time),
        )
        for row in rows
    ]


def approve_batch(
    db: Session,
    *,
    batch_id: str | None,
    archive_existing: bool = True,
    actor: User | None = None,
) -> ApprovalOutcome:
    batch_id = validate_batch_id(batch_id)
    actor_id = actor.id if actor is not None else None
    rows = _load_draft_batch(db, batch_id, lock=True)
    semester, year = _batch_term(rows, batch_id)
    try:
        archived = 0
        if archive_existing:
            current = db.execute(
                select(Schedule)
                .where(
                    Schedule.semester == semester,
                    Schedule.year == year,
                    Schedule.status == ScheduleStatus.approved,
                )
                .with_for_update()
            ).scalars()
            for row in current:
                _transition(row, ScheduleStatus.archived)
                archived += 1

        approved_at = datetime.now(timezone.utc)
        for row in rows:
            _transition(row, ScheduleStatus.approved)
            row.approved_by = actor_id
            row.approved_at = approved_at
        db.flush()

        active = list(
            db.execute(
                select(Schedule).where(
                    Schedule.semester == semester,
                    Schedule.year == year,
                    Schedule.status == ScheduleStatus.approved,
                )
            ).scalars()
        )
        internal = find_conflicts(rows_to_assignments(db, rows))
        if internal:
            raise ConflictError(
                "Draft batch double-books a classroom or instructor",
                details={"batch_id": batch_id, "conflicts": [asdict(clash) for clash in internal]},
            )
        clashes = find_conflicts(rows_to_assignments(db, active))
        if clashes:
            raise TimetableClashError(
                "Approving this batch would double-book a classroom or instructor in the active timetable",
                details={
                    "batch_id": batch_id,
                    "archive_existing": archive_existing,
                    "conflicts": [asdict(clash) for clash in clashes],
                },
            )

        log_activity(
            db,
            user=actor,
            action="schedule.approve",
            entity_type="schedule_batch",
            entity_id=batch_id,
            details={
                "semester": semester,
                "year": year,
                "approved": len(rows),
                "archived": archived,
            },
        )
        db.commit()
    except TimetableClashError:
        db.rollback()
        logger.warning("SCHEDULE APPROVAL REFUSED | user_id=%s | batch_id=%s | reason=clash", actor_id, batch_id)
        raise
    except Exception:
        db.rollback()
        logger.exception("SCHEDULE APPROVAL FAILED | user_id=%s | batch_id=%s", actor_id, batch_id)
        raise

    logger.info(
        "SCHEDULE APPROVED | user_id=%s | batch_id=%s | semester=%s | year=%s | approved=%s | archived=%s",
        actor_id,
        batch_id,
        semester,
        year,
        len(rows),
        archived,
    )
    return ApprovalOutcome(
        batch_id=batch_id,
        semester=semester,
        year=year,
        approved_count=len(rows),
        archived_count=archived,
        approved_at=approved_at,
    )


def reject_batch(db: Session, *, batch_id: str | None, actor: User | None = None) -> RejectionOutcome:
    batch_id = validate_batch_id(batch_id)
    actor_id = actor.id if actor is not None else None
    rows = _load_draft_batch(db, batch_id, lock=True)
    semester, year = _batch_term(rows, batch_id)
    try:
        deleted = db.execute(
            delete(Schedule).where(
                Schedule.batch_id == batch_id,
                Schedule.status == ScheduleStatus.draft,
            )
        ).rowcount or 0
        log_activity(
            db,
            user=actor,
            action="schedule.reject",
            entity_type="schedule_batch",
            entity_id=batch_id,
            details={"semester": semester, "year": year, "deleted": deleted},
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("SCHEDULE REJECTION FAILED | user_id=%s | batch_id=%s", actor_id, batch_id)
        raise

    logger.info(
        "SCHEDULE REJECTED | user_id=%s | batch_id=%s | semester=%s | year=%s | deleted=%s",
        actor_id,
        batch_id,
        semester,
        year,
        deleted,
    )
    return RejectionOutcome(batch_id=batch_id, semester=semester, year=year, deleted_count=deleted)


def sort_schedule_rows(rows: list[Schedule]) -> list[Schedule]:
    return sorted(
        rows,
        key=lambda row: (
            row.year,
            row.semester,
            DAY_ORDER.index(row.day_of_week) if row.day_of_week in DAY_ORDER else len(DAY_ORDER),
            row.start_time,
            row.classroom_id,
        ),
    )


def list_drafts(db: Session) -> list[DraftBatch]:
    rows = db.execute(select(Schedule).where(Schedule.status == ScheduleStatus.draft)).scalars()
    grouped: dict[str, list[Schedule]] = defaultdict(list)
    for row in rows:
        grouped[row.batch_id or ""].append(row)

    batches = [
        DraftBatch(
            batch_id=batch_id,
            semester=items[0].semester,
            year=items[0].year,
            created_at=min((item.created_at for item in items if item.created_at is not None), default=None),
            schedules=sort_schedule_rows(items),
        )
        for batch_id, items in grouped.items()
    ]
    return sorted(batches, key=lambda item: (item.year, item.semester, item.batch_id))


def list_active(db: Session, *, semester: str | None = None, year: int | None = None) -> list[Schedule]:
    statement = select(Schedule).where(Schedule.status == ScheduleStatus.approved)
    if semester:
        statement = statement.where(Schedule.semester == semester.strip())
    if year is not None:
        statement = statement.where(Schedule.year == year)
    return sort_schedule_rows(list(db.execute(statement).scalars()))
