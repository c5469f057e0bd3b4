from __future__ import annotations

import logging

from sqlalchemy import inspect, text

import app.models  # noqa: F401  registers every table on Base.metadata
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "department", "is_active"},
    "classrooms": {"id", "code", "building", "room_number", "capacity", "type"},
    "courses": {"id", "code", "department", "required_room_type"},
    "course_sections": {"id", "course_id", "semester", "year", "instructor_id", "capacity", "enrolled_count"},
    "enrollments": {"id", "student_id", "section_id", "status"},
    "schedules": {
        "id",
        "section_id",
        "classroom_id",
        "semester",
        "year",
        "day_of_week",
        "start_time",
        "end_time",
        "status",
        "batch_id",
        "approved_by",
        "approved_at",
    },
}


def _ensure_schedule_term_columns() -> None:
    # Older databases stored the term only on course_sections; backfill the denormalized copy.
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "schedules" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("schedules")}
        added = False
        if "semester" not in column_names:
            connection.execute(text("ALTER TABLE schedules ADD COLUMN semester VARCHAR(20) NOT NULL DEFAULT ''"))
            added = True
        if "year" not in column_names:
            connection.execute(text("ALTER TABLE schedules ADD COLUMN year INTEGER NOT NULL DEFAULT 0"))
            added = True
        if not added:
            return
        connection.execute(
            text(
                "UPDATE schedules SET "
                "semester = (SELECT cs.semester FROM course_sections cs WHERE cs.id = schedules.section_id), "
                "year = (SELECT cs.year FROM course_sections cs WHERE cs.id = schedules.section_id) "
                "WHERE EXISTS (SELECT 1 FROM course_sections cs WHERE cs.id = schedules.section_id)"
            )
        )
        logger.info("SCHEMA PATCH APPLIED | table=schedules | columns=semester,year")


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _ensure_schedule_term_columns()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
