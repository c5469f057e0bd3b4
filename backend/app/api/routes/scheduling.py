from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.config import get_settings
from app.core.exceptions import ResourceNotFoundError
from app.models.schedule import ScheduleStatus
from app.models.user import User, UserRole
from app.schemas.schedule import (
    ApproveScheduleRequest,
    ApproveScheduleResponse,
    ClassroomUtilizationOut,
    DepartmentScheduleOut,
    DraftBatchOut,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    OverlapCheckRequest,
    OverlapCheckResponse,
    RejectScheduleResponse,
    ScheduleOut,
)
from app.services.scheduling import publisher, reporting

router = APIRouter()
settings = get_settings()


@router.post("/generate", response_model=GenerateScheduleResponse)
def generate(
    payload: GenerateScheduleRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> GenerateScheduleResponse:
    outcome = publisher.generate_schedule(
        db,
        semester=payload.semester,
        year=payload.year,
        clear_existing=payload.clear_existing,
        actor=current_user,
        settings=settings,
    )
    if outcome.unplaced_section_ids:
        message = (
            f"Generated {outcome.scheduled_count} draft sessions; "
            f"{len(outcome.unplaced_section_ids)} section(s) could not be placed"
        )
    else:
        message = f"Generated {outcome.scheduled_count} draft sessions"
    return GenerateScheduleResponse(
        batch_id=outcome.batch_id,
        status=outcome.status,
        semester=outcome.semester,
        year=outcome.year,
        scheduled_count=outcome.scheduled_count,
        unplaced_section_ids=outcome.unplaced_section_ids,
        cleared_drafts=outcome.cleared_drafts,
        exhausted=outcome.exhausted,
        steps=outcome.steps,
        runtime_ms=outcome.runtime_ms,
        message=message,
    )


@router.get("/drafts", response_model=list[DraftBatchOut])
def list_drafts(
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[DraftBatchOut]:
    return [
        DraftBatchOut(
            batch_id=batch.batch_id,
            semester=batch.semester,
            year=batch.year,
            schedule_count=len(batch.schedules),
            created_at=batch.created_at,
            schedules=reporting.build_schedule_views(db, batch.schedules),
        )
        for batch in publisher.list_drafts(db)
    ]


@router.post("/approve/{batch_id}", response_model=ApproveScheduleResponse)
def approve(
    batch_id: str,
    payload: ApproveScheduleRequest | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ApproveScheduleResponse:
    archive_existing = payload.archive_existing if payload is not None else True
    outcome = publisher.approve_batch(
        db,
        batch_id=batch_id,
        archive_existing=archive_existing,
        actor=current_user,
    )
    return ApproveScheduleResponse(
        batch_id=outcome.batch_id,
        semester=outcome.semester,
        year=outcome.year,
        approved_count=outcome.approved_count,
        archived_count=outcome.archived_count,
        approved_at=outcome.approved_at,
    )


@router.delete("/reject/{batch_id}", response_model=RejectScheduleResponse)
def reject(
    batch_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> RejectScheduleResponse:
    outcome = publisher.reject_batch(db, batch_id=batch_id, actor=current_user)
    return RejectScheduleResponse(
        batch_id=outcome.batch_id,
        semester=outcome.semester,
        year=outcome.year,
        deleted_count=outcome.deleted_count,
    )


@router.get("/active", response_model=list[ScheduleOut])
def list_active(
    semester: str | None = None,
    year: int | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ScheduleOut]:
    rows = publisher.list_active(db, semester=semester, year=year)
    return reporting.build_schedule_views(db, rows)


@router.get("/my-schedule", response_model=list[ScheduleOut])
def my_schedule(
    semester: str | None = None,
    year: int | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ScheduleOut]:
    return reporting.my_schedule(db, user=current_user, semester=semester, year=year)


@router.get("/my-schedule/ical")
def my_schedule_ical(
    semester: str | None = None,
    year: int | None = None,
    start_date: date | None = Query(default=None, description="First week of classes; defaults to today"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    schedules = reporting.my_schedule(db, user=current_user, semester=semester, year=year)
    body = reporting.export_ical(
        schedules,
        calendar_name=f"{current_user.name} timetable",
        anchor=start_date,
        weeks=settings.calendar_weeks,
    )
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": 'attachment; filename="schedule.ics"'},
    )


@router.get("/reports/utilization", response_model=list[ClassroomUtilizationOut])
def utilization_report(
    semester: str | None = None,
    year: int | None = None,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.staff)),
    db: Session = Depends(get_db),
) -> list[ClassroomUtilizationOut]:
    return reporting.classroom_utilization(db, semester=semester, year=year, settings=settings)


@router.get("/departments/all", response_model=list[DepartmentScheduleOut])
def all_department_schedules(
    semester: str | None = None,
    year: int | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[DepartmentScheduleOut]:
    return reporting.department_schedules(db, semester=semester, year=year)


@router.get("/departments/{department}", response_model=DepartmentScheduleOut)
def department_schedule(
    department: str,
    semester: str | None = None,
    year: int | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> DepartmentScheduleOut:
    groups = reporting.department_schedules(db, department=department, semester=semester, year=year)
    if not groups:
        return DepartmentScheduleOut(department=department.strip(), schedule_count=0, schedules=[])
    return groups[0]


@router.post("/check-overlap", response_model=OverlapCheckResponse)
def check_overlap(
    payload: OverlapCheckRequest,
    current_user: User = Depends(get_current_user),
) -> OverlapCheckResponse:
    return OverlapCheckResponse(
        overlaps=reporting.check_overlap(
            payload.day_a,
            payload.start_a,
            payload.end_a,
            payload.day_b,
            payload.start_b,
            payload.end_b,
        )
    )


@router.get("/{schedule_id}", response_model=ScheduleOut)
def get_schedule(
    schedule_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ScheduleOut:
    detail = reporting.get_schedule_detail(db, schedule_id)
    # Drafts are visible to administrators only.
    if detail.status == ScheduleStatus.draft and current_user.role != UserRole.admin:
        raise ResourceNotFoundError("Schedule", schedule_id)
    return detail
