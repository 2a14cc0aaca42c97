from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from casewatch.app.db import Base


# -------------------------
# Helpers
# -------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_str() -> str:
    return str(uuid.uuid4())


def case_open_rule_key(student_id: str, course_id: Optional[str], rule_id: str) -> str:
    return f"{student_id}|{course_id or '-'}|{rule_id}"


# -------------------------
# People and courses
# -------------------------

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    campus: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    campus: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    teacher_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    enrollments = relationship(
        "Enrollment",
        back_populates="course",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id", "year", name="uq_enrollment_course_student_year"),
        Index("ix_enrollments_course_status", "course_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    course_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    course = relationship("Course", back_populates="enrollments")


# -------------------------
# Academic records (read by the alert engine)
# -------------------------

class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        # one record per student/course/day
        UniqueConstraint("course_id", "student_id", "date", name="uq_attendance_course_student_date"),
        Index("ix_attendance_course_student_date", "course_id", "student_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    status: Mapped[str] = mapped_column(String(1), nullable=False)  # P/A/T/J
    created_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class PartialReport(Base):
    __tablename__ = "partial_reports"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "year", "term", name="uq_partial_student_course_year_term"),
        Index("ix_partial_reports_course_student", "course_id", "student_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    teacher_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    term: Mapped[str] = mapped_column(String(3), nullable=False)  # MAY/OCT

    reading: Mapped[str] = mapped_column(String(1), nullable=False)
    writing: Mapped[str] = mapped_column(String(1), nullable=False)
    listening: Mapped[str] = mapped_column(String(1), nullable=False)
    speaking: Mapped[str] = mapped_column(String(1), nullable=False)
    attendance: Mapped[str] = mapped_column(String(1), nullable=False)
    commitment: Mapped[str] = mapped_column(String(1), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def skill_grades(self) -> List[str]:
        return [self.reading, self.writing, self.listening, self.speaking]


class ReportCard(Base):
    __tablename__ = "report_cards"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "year", name="uq_report_card_student_course_year"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # exam scores, 0-100
    exam_oral: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    exam_written: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    final_oral: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    final_written: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    condition: Mapped[str] = mapped_column(String(20), default="APPROVED", nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def exam_scores(self) -> List[float]:
        values = [self.exam_oral, self.exam_written, self.final_oral, self.final_written]
        return [value for value in values if value is not None]


class Communication(Base):
    __tablename__ = "communications"
    __table_args__ = (
        Index("ix_communications_course_student_created", "course_id", "student_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    # NULL course only for reminders about course-less cases
    course_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=True)
    # NULL student means a message to the whole course
    student_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    sender_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    sender_role: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# -------------------------
# Cases
# -------------------------

class Case(Base):
    """
    Tracked concern about a student.

    open_rule_key is set only while an AUTOMATION case is OPEN; the unique
    constraint on it keeps a single open case per (student, course, rule_id).
    """
    __tablename__ = "cases"
    __table_args__ = (
        Index("ix_cases_student_course_status", "student_id", "course_id", "status"),
        Index("ix_cases_status_updated_at", "status", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    watchers: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="OPEN", nullable=False)
    source: Mapped[str] = mapped_column(String(20), default="MANUAL", nullable=False, index=True)
    rule_id: Mapped[Optional[str]] = mapped_column(String(60), nullable=True, index=True)
    open_rule_key: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, unique=True)

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    checklist = relationship(
        "CaseChecklistItem",
        back_populates="case",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CaseChecklistItem.position",
    )


class CaseChecklistItem(Base):
    __tablename__ = "case_checklist_items"
    __table_args__ = (
        Index("ix_case_checklist_items_case_position", "case_id", "position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    label: Mapped[str] = mapped_column(String(300), nullable=False)
    done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    done_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    done_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    case = relationship("Case", back_populates="checklist")


class CaseReply(Base):
    __tablename__ = "case_replies"
    __table_args__ = (
        Index("ix_case_replies_case_created", "case_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class CaseReminder(Base):
    """
    One row per reminder sent for a stale case. Append-only.
    """
    __tablename__ = "case_reminders"
    __table_args__ = (
        Index("ix_case_reminders_case_sent", "case_id", "sent_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    communication_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("communications.id", ondelete="CASCADE"),
        nullable=False,
    )
    target_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
