"""create casewatch tables

Revision ID: 7a3e5c2d9f10
Revises:
Create Date: 2026-10-12 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7a3e5c2d9f10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("campus", sa.String(length=40), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_campus", "users", ["campus"])

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("campus", sa.String(length=40), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_courses_year", "courses", ["year"])
    op.create_index("ix_courses_campus", "courses", ["campus"])
    op.create_index("ix_courses_teacher_id", "courses", ["teacher_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("course_id", "student_id", "year", name="uq_enrollment_course_student_year"),
    )
    op.create_index("ix_enrollments_course_status", "enrollments", ["course_id", "status"])
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_year", "enrollments", ["year"])

    op.create_table(
        "attendance",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=1), nullable=False),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("course_id", "student_id", "date", name="uq_attendance_course_student_date"),
    )
    op.create_index("ix_attendance_course_student_date", "attendance", ["course_id", "student_id", "date"])

    op.create_table(
        "partial_reports",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("term", sa.String(length=3), nullable=False),
        sa.Column("reading", sa.String(length=1), nullable=False),
        sa.Column("writing", sa.String(length=1), nullable=False),
        sa.Column("listening", sa.String(length=1), nullable=False),
        sa.Column("speaking", sa.String(length=1), nullable=False),
        sa.Column("attendance", sa.String(length=1), nullable=False),
        sa.Column("commitment", sa.String(length=1), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "course_id", "year", "term", name="uq_partial_student_course_year_term"),
    )
    op.create_index("ix_partial_reports_course_student", "partial_reports", ["course_id", "student_id"])

    op.create_table(
        "report_cards",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("exam_oral", sa.Float(), nullable=True),
        sa.Column("exam_written", sa.Float(), nullable=True),
        sa.Column("final_oral", sa.Float(), nullable=True),
        sa.Column("final_written", sa.Float(), nullable=True),
        sa.Column("condition", sa.String(length=20), nullable=False, server_default="APPROVED"),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "course_id", "year", name="uq_report_card_student_course_year"),
    )
    op.create_index("ix_report_cards_student_id", "report_cards", ["student_id"])
    op.create_index("ix_report_cards_course_id", "report_cards", ["course_id"])
    op.create_index("ix_report_cards_year", "report_cards", ["year"])

    op.create_table(
        "communications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=True),
        sa.Column("student_id", sa.String(length=36), nullable=True),
        sa.Column("sender_id", sa.String(length=36), nullable=False),
        sa.Column("sender_role", sa.String(length=20), nullable=False),
        sa.Column("recipient_id", sa.String(length=36), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_communications_course_student_created",
        "communications",
        ["course_id", "student_id", "created_at"],
    )
    op.create_index("ix_communications_student_id", "communications", ["student_id"])
    op.create_index("ix_communications_recipient_id", "communications", ["recipient_id"])
    op.create_index("ix_communications_year", "communications", ["year"])
    op.create_index("ix_communications_category", "communications", ["category"])

    op.create_table(
        "cases",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=False),
        sa.Column("assignee_id", sa.String(length=36), nullable=True),
        sa.Column("watchers", sa.JSON(), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("severity", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="MANUAL"),
        sa.Column("rule_id", sa.String(length=60), nullable=True),
        sa.Column("open_rule_key", sa.String(length=200), nullable=True),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["assignee_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("open_rule_key"),
    )
    op.create_index("ix_cases_student_id", "cases", ["student_id"])
    op.create_index("ix_cases_course_id", "cases", ["course_id"])
    op.create_index("ix_cases_assignee_id", "cases", ["assignee_id"])
    op.create_index("ix_cases_category", "cases", ["category"])
    op.create_index("ix_cases_severity", "cases", ["severity"])
    op.create_index("ix_cases_source", "cases", ["source"])
    op.create_index("ix_cases_rule_id", "cases", ["rule_id"])
    op.create_index("ix_cases_student_course_status", "cases", ["student_id", "course_id", "status"])
    op.create_index("ix_cases_status_updated_at", "cases", ["status", "updated_at"])

    op.create_table(
        "case_checklist_items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("case_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("label", sa.String(length=300), nullable=False),
        sa.Column("done", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("done_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("done_by", sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["done_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_checklist_items_case_position", "case_checklist_items", ["case_id", "position"])

    op.create_table(
        "case_replies",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("case_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_replies_case_created", "case_replies", ["case_id", "created_at"])

    op.create_table(
        "case_reminders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("case_id", sa.String(length=36), nullable=False),
        sa.Column("communication_id", sa.String(length=36), nullable=False),
        sa.Column("target_user_id", sa.String(length=36), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["communication_id"], ["communications.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_reminders_case_sent", "case_reminders", ["case_id", "sent_at"])


def downgrade() -> None:
    op.drop_index("ix_case_reminders_case_sent", table_name="case_reminders")
    op.drop_table("case_reminders")

    op.drop_index("ix_case_replies_case_created", table_name="case_replies")
    op.drop_table("case_replies")

    op.drop_index("ix_case_checklist_items_case_position", table_name="case_checklist_items")
    op.drop_table("case_checklist_items")

    for name in (
        "ix_cases_status_updated_at",
        "ix_cases_student_course_status",
        "ix_cases_rule_id",
        "ix_cases_source",
        "ix_cases_severity",
        "ix_cases_category",
        "ix_cases_assignee_id",
        "ix_cases_course_id",
        "ix_cases_student_id",
    ):
        op.drop_index(name, table_name="cases")
    op.drop_table("cases")

    for name in (
        "ix_communications_category",
        "ix_communications_year",
        "ix_communications_recipient_id",
        "ix_communications_student_id",
        "ix_communications_course_student_created",
    ):
        op.drop_index(name, table_name="communications")
    op.drop_table("communications")

    op.drop_index("ix_report_cards_year", table_name="report_cards")
    op.drop_index("ix_report_cards_course_id", table_name="report_cards")
    op.drop_index("ix_report_cards_student_id", table_name="report_cards")
    op.drop_table("report_cards")

    op.drop_index("ix_partial_reports_course_student", table_name="partial_reports")
    op.drop_table("partial_reports")

    op.drop_index("ix_attendance_course_student_date", table_name="attendance")
    op.drop_table("attendance")

    op.drop_index("ix_enrollments_year", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_index("ix_enrollments_course_status", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("ix_courses_teacher_id", table_name="courses")
    op.drop_index("ix_courses_campus", table_name="courses")
    op.drop_index("ix_courses_year", table_name="courses")
    op.drop_table("courses")

    op.drop_index("ix_users_campus", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
