"""create classrooms, courses, sections and enrollments

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


room_type_enum = sa.Enum("lecture", "lab", "studio", name="room_type")
enrollment_status_enum = sa.Enum("enrolled", "dropped", name="enrollment_status")


def upgrade() -> None:
    op.create_table(
        "classrooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False),
        sa.Column("room_number", sa.String(length=20), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("type", room_type_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_classrooms_code", "classrooms", ["code"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("required_room_type", room_type_enum, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_courses_code", "courses", ["code"], unique=True)
    op.create_index("ix_courses_department", "courses", ["department"])

    op.create_table(
        "course_sections",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("section_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("semester", sa.String(length=20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.String(length=36), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("enrolled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("course_id", "section_number", "semester", "year", name="uq_course_sections_course_term"),
    )
    op.create_index("ix_course_sections_course_id", "course_sections", ["course_id"])
    op.create_index("ix_course_sections_semester", "course_sections", ["semester"])
    op.create_index("ix_course_sections_year", "course_sections", ["year"])
    op.create_index("ix_course_sections_instructor_id", "course_sections", ["instructor_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "section_id", name="uq_enrollments_student_section"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_section_id", "enrollments", ["section_id"])


def downgrade() -> None:
    op.drop_index("ix_enrollments_section_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_course_sections_instructor_id", table_name="course_sections")
    op.drop_index("ix_course_sections_year", table_name="course_sections")
    op.drop_index("ix_course_sections_semester", table_name="course_sections")
    op.drop_index("ix_course_sections_course_id", table_name="course_sections")
    op.drop_table("course_sections")
    op.drop_index("ix_courses_department", table_name="courses")
    op.drop_index("ix_courses_code", table_name="courses")
    op.drop_table("courses")
    op.drop_index("ix_classrooms_code", table_name="classrooms")
    op.drop_table("classrooms")
    enrollment_status_enum.drop(op.get_bind(), checkfirst=True)
    room_type_enum.drop(op.get_bind(), checkfirst=True)
