from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.models.classroom import Classroom
from app.models.schedule import Schedule, ScheduleStatus
from app.models.user import User, UserRole
from app.schemas.classroom import ClassroomCreate, ClassroomOut, ClassroomUpdate
from app.services.scheduling.integrity import classroom_edit_violations

router = APIRouter()


@router.get("/", response_model=list[ClassroomOut])
def list_classrooms(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[ClassroomOut]:
    return list(db.execute(select(Classroom).order_by(Classroom.code)).scalars())


@router.get("/{classroom_id}", response_model=ClassroomOut)
def get_classroom(
    classroom_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    classroom = db.get(Classroom, classroom_id)
    if classroom is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Classroom not found")
    return classroom


@router.post("/", response_model=ClassroomOut, status_code=status.HTTP_201_CREATED)
def create_classroom(
    payload: ClassroomCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    existing = db.execute(select(Classroom).where(Classroom.code == payload.code)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Classroom code already exists")
    classroom = Classroom(**payload.model_dump())
    db.add(classroom)
    db.commit()
    db.refresh(classroom)
    return classroom


@router.put("/{classroom_id}", response_model=ClassroomOut)
def update_classroom(
    classroom_id: str,
    payload: ClassroomUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    classroom = db.get(Classroom, classroom_id)
    if classroom is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Classroom not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("code"):
        existing = db.execute(
            select(Classroom).where(Classroom.code == data["code"], Classroom.id != classroom_id)
        ).scalar_one_or_none()
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Classroom code already exists")

    violations = classroom_edit_violations(
        db,
        classroom,
        capacity=data.get("capacity") or classroom.capacity,
        room_type=data.get("type") or classroom.type,
    )
    if violations:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Classroom is booked by the approved timetable: {violations[0].message}",
        )

    for key, value in data.items():
        if value is not None:
            setattr(classroom, key, value)
    db.commit()
    db.refresh(classroom)
    return classroom


@router.delete("/{classroom_id}")
def delete_classroom(
    classroom_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    classroom = db.get(Classroom, classroom_id)
    if classroom is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Classroom not found")
    booked = db.execute(
        select(Schedule.id).where(
            Schedule.classroom_id == classroom_id,
            Schedule.status.in_([ScheduleStatus.draft, ScheduleStatus.approved]),
        ).limit(1)
    ).first()
    if booked is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Classroom is booked by a draft or approved schedule",
        )
    db.delete(classroom)
    db.commit()
    return {"success": True}
