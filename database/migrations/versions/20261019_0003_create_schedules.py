"""create schedules

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


schedule_status_enum = sa.Enum("draft", "approved", "rejected", "archived", name="schedule_status")


def upgrade() -> None:
    op.create_table(
        "schedules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=False),
        sa.Column("classroom_id", sa.String(length=36), nullable=False),
        sa.Column("semester", sa.String(length=20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("status", schedule_status_enum, nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=True),
        sa.Column("approved_by", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_schedules_section_id", "schedules", ["section_id"])
    op.create_index("ix_schedules_classroom_id", "schedules", ["classroom_id"])
    op.create_index("ix_schedules_batch_id", "schedules", ["batch_id"])
    op.create_index("ix_schedules_term_status", "schedules", ["semester", "year", "status"])


def downgrade() -> None:
    op.drop_index("ix_schedules_term_status", table_name="schedules")
    op.drop_index("ix_schedules_batch_id", table_name="schedules")
    op.drop_index("ix_schedules_classroom_id", table_name="schedules")
    op.drop_index("ix_schedules_section_id", table_name="schedules")
    op.drop_table("schedules")
    schedule_status_enum.drop(op.get_bind(), checkfirst=True)
