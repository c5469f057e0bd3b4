from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Stage an audit record in the caller's transaction; it commits or rolls back with the change it describes."""
    record = ActivityLog(
        user_id=user.id if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    logger.debug("AUDIT STAGED | action=%s | entity_type=%s | entity_id=%s", action, entity_type, entity_id)
    return record


def activity_for_entity(db: Session, entity_id: str) -> list[ActivityLog]:
    return list(
        db.execute(
            select(ActivityLog).where(ActivityLog.entity_id == entity_id).order_by(ActivityLog.created_at, ActivityLog.id)
        ).scalars()
    )
