from __future__ import annotations

import argparse
from datetime import date, datetime, timedelta, timezone

from casewatch.app.db import Base, engine, session_scope
from casewatch.app.models import (
    Attendance,
    Communication,
    Course,
    Enrollment,
    PartialReport,
    ReportCard,
    User,
)


def _school_days(end: date, count: int) -> list[date]:
    days: list[date] = []
    current = end
    while len(days) < count:
        if current.weekday() < 5:
            days.append(current)
        current -= timedelta(days=1)
    return sorted(days)


def seed_demo(year: int | None = None, campus: str = "DERQUI") -> dict:
    """
    Create one course with a teacher, a coordinator and four students, each
    student shaped to trip a different alert rule (the last one trips none).
    """
    now = datetime.now(timezone.utc)
    year = year or now.year

    with session_scope() as db:
        # 1) Staff
        coordinator = User(name="Demo Coordinator", email=f"coordinator+{year}@casewatch.test", role="coordinator", campus=campus)
        teacher = User(name="Demo Teacher", email=f"teacher+{year}@casewatch.test", role="teacher", campus=campus)
        db.add_all([coordinator, teacher])
        db.flush()

        # 2) Course and students
        course = Course(name=f"English {year} A", year=year, campus=campus, teacher_id=teacher.id)
        db.add(course)
        students = [
            User(name=f"Student {label}", email=f"student-{label}+{year}@casewatch.test", role="student", campus=campus)
            for label in ("absent", "partials", "behavior", "steady")
        ]
        db.add_all(students)
        db.flush()
        db.add_all([Enrollment(course_id=course.id, student_id=s.id, year=year, status="active") for s in students])

        absent, partials, behavior, steady = students
        days = _school_days(now.date(), 6)

        # 3) Attendance: three trailing absences for one student, perfect for the rest
        for index, day in enumerate(days):
            db.add(Attendance(course_id=course.id, student_id=absent.id, day=day, status="A" if index >= 3 else "P", created_by=teacher.id))
            for student in (partials, behavior, steady):
                db.add(Attendance(course_id=course.id, student_id=student.id, day=day, status="P", created_by=teacher.id))

        # 4) Partials and report cards
        for student in students:
            low = student is partials
            db.add(
                PartialReport(
                    student_id=student.id,
                    course_id=course.id,
                    teacher_id=teacher.id,
                    year=year,
                    term="MAY",
                    reading="B",
                    writing="D" if low else "A",
                    listening="A",
                    speaking="B",
                    attendance="A",
                    commitment="A",
                )
            )
            db.add(ReportCard(student_id=student.id, course_id=course.id, teacher_id=teacher.id, year=year, exam_oral=80, exam_written=75))

        # 5) Two behavior notes inside the 30-day window
        for days_ago in (3, 10):
            db.add(
                Communication(
                    course_id=course.id,
                    student_id=behavior.id,
                    sender_id=teacher.id,
                    sender_role="teacher",
                    year=year,
                    category="BEHAVIOR",
                    title="Behavior note",
                    body="Disrupted the class.",
                    created_at=now - timedelta(days=days_ago),
                )
            )

        db.flush()
        return {
            "coordinator_email": coordinator.email,
            "teacher_email": teacher.email,
            "course_id": course.id,
            "student_ids": [s.id for s in students],
        }


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo course for the alert engine.")
    parser.add_argument("--year", type=int, default=None, help="Academic year (defaults to the current one).")
    parser.add_argument("--campus", default="DERQUI")
    parser.add_argument("--create-tables", action="store_true", help="Create tables without running migrations.")
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    summary = seed_demo(year=args.year, campus=args.campus)
    print("\nSeeded demo data")
    print(f"Coordinator: {summary['coordinator_email']}")
    print(f"Teacher:     {summary['teacher_email']}")
    print(f"Course:      {summary['course_id']}")
    print(f"Students:    {len(summary['student_ids'])}\n")


if __name__ == "__main__":
    main()
