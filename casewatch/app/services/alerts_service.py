from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casewatch.app.domain.contracts import AuthContext
from casewatch.app.domain.vocab import (
    ATTENDANCE_ABSENT,
    ATTENDANCE_PRESENT,
    LOW_LETTER_GRADES,
)
from casewatch.app.models import (
    Attendance,
    Case,
    CaseReminder,
    Communication,
    Course,
    Enrollment,
    PartialReport,
    ReportCard,
    case_open_rule_key,
)

logger = logging.getLogger(__name__)

RULE_ATTENDANCE_ABSENCES = "attendance_3_absences"
RULE_ATTENDANCE_BELOW_80 = "attendance_below_80"
RULE_PARTIALS_LOW = "partials_low_scores"
RULE_BEHAVIOR_30D = "behavior_2_30d"
RULE_REPORT_CARD_EXAM = "reportcard_exam_lt5"

ATTENDANCE_WINDOW = 10
CONSECUTIVE_ABSENCES = 3
ATTENDANCE_MIN_RECORDS = 5
ATTENDANCE_MIN_PCT = 80
BEHAVIOR_WINDOW_DAYS = 30
BEHAVIOR_MIN_COUNT = 2
REPORT_CARD_MIN_SCORE = 5
DEFAULT_REMINDER_DAYS = 7


@dataclass(frozen=True)
class AlertRunResult:
    scanned: int
    created: int
    reminders_sent: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _round_pct(value: float) -> int:
    # half-up, so 62.5 -> 63
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _require_course(db: Session, course_id: str) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="course not found")
    return course


def _active_student_ids(db: Session, course_id: str) -> List[str]:
    return list(
        db.execute(
            select(Enrollment.student_id)
            .where(Enrollment.course_id == course_id, Enrollment.status == "active")
            .order_by(Enrollment.student_id.asc())
        )
        .scalars()
        .all()
    )


def _find_open_automated_case(
    db: Session,
    *,
    student_id: str,
    course_id: Optional[str],
    rule_id: str,
) -> Optional[Case]:
    course_clause = Case.course_id.is_(None) if course_id is None else Case.course_id == course_id
    return (
        db.execute(
            select(Case)
            .where(
                Case.student_id == student_id,
                course_clause,
                Case.status == "OPEN",
                Case.source == "AUTOMATION",
                Case.rule_id == rule_id,
            )
            .order_by(Case.created_at.asc(), Case.id.asc())
        )
        .scalars()
        .first()
    )


def ensure_automated_case(
    db: Session,
    *,
    student_id: str,
    course_id: Optional[str],
    title: str,
    description: Optional[str],
    category: str,
    severity: str,
    rule_id: str,
    created_by: str,
) -> Tuple[Case, bool]:
    """
    Return the OPEN automated case for (student, course, rule_id), creating it
    when absent. An existing case is returned untouched.

    The insert runs in a SAVEPOINT; the unique open_rule_key turns a concurrent
    duplicate into an IntegrityError, after which the winner's row is returned.
    """
    existing = _find_open_automated_case(db, student_id=student_id, course_id=course_id, rule_id=rule_id)
    if existing:
        logger.debug("Open case %s already covers rule=%s student=%s", existing.id, rule_id, student_id)
        return existing, False

    case = Case(
        student_id=student_id,
        course_id=course_id,
        created_by=created_by,
        watchers=[created_by],
        assignee_id=None,
        category=category,
        severity=severity,
        status="OPEN",
        source="AUTOMATION",
        rule_id=rule_id,
        open_rule_key=case_open_rule_key(student_id, course_id, rule_id),
        title=title,
        description=description or "",
    )
    try:
        with db.begin_nested():
            db.add(case)
            db.flush()
    except IntegrityError:
        winner = _find_open_automated_case(db, student_id=student_id, course_id=course_id, rule_id=rule_id)
        if winner is None:
            raise
        logger.warning(
            "Lost insert race for rule=%s student=%s course=%s; reusing case %s",
            rule_id,
            student_id,
            course_id,
            winner.id,
        )
        return winner, False

    logger.info("Opened case %s rule=%s student=%s course=%s", case.id, rule_id, student_id, course_id)
    return case, True


def rule_attendance(db: Session, course_id: str, created_by: str) -> int:
    created = 0
    for student_id in _active_student_ids(db, course_id):
        recent = (
            db.execute(
                select(Attendance.status)
                .where(Attendance.course_id == course_id, Attendance.student_id == student_id)
                .order_by(Attendance.day.desc())
                .limit(ATTENDANCE_WINDOW)
            )
            .scalars()
            .all()
        )

        latest = recent[:CONSECUTIVE_ABSENCES]
        if len(latest) == CONSECUTIVE_ABSENCES and all(status == ATTENDANCE_ABSENT for status in latest):
            _, was_created = ensure_automated_case(
                db,
                student_id=student_id,
                course_id=course_id,
                title="Attendance: 3 consecutive absences",
                description="Three consecutive absences were recorded.",
                category="ATTENDANCE",
                severity="MEDIUM",
                rule_id=RULE_ATTENDANCE_ABSENCES,
                created_by=created_by,
            )
            created += int(was_created)
            # the percentage rule is not evaluated once this one fires
            continue

        if len(recent) < ATTENDANCE_MIN_RECORDS:
            continue
        present = sum(1 for status in recent if status == ATTENDANCE_PRESENT)
        pct = present / len(recent) * 100
        if pct < ATTENDANCE_MIN_PCT:
            _, was_created = ensure_automated_case(
                db,
                student_id=student_id,
                course_id=course_id,
                title=f"Low attendance: {_round_pct(pct)}%",
                description=f"Attendance below {ATTENDANCE_MIN_PCT}% over the last {len(recent)} records.",
                category="ATTENDANCE",
                severity="LOW",
                rule_id=RULE_ATTENDANCE_BELOW_80,
                created_by=created_by,
            )
            created += int(was_created)
    return created


def rule_partials(db: Session, course_id: str, created_by: str) -> int:
    created = 0
    for student_id in _active_student_ids(db, course_id):
        rows = (
            db.execute(
                select(PartialReport).where(
                    PartialReport.course_id == course_id,
                    PartialReport.student_id == student_id,
                )
            )
            .scalars()
            .all()
        )
        risky = any(grade in LOW_LETTER_GRADES for row in rows for grade in row.skill_grades)
        if not risky:
            continue
        _, was_created = ensure_automated_case(
            db,
            student_id=student_id,
            course_id=course_id,
            title="Partials: low performance (D/E)",
            description="D or E grades were recorded in partial reports.",
            category="ACADEMIC_DIFFICULTY",
            severity="MEDIUM",
            rule_id=RULE_PARTIALS_LOW,
            created_by=created_by,
        )
        created += int(was_created)
    return created


def rule_behavior(db: Session, course_id: str, created_by: str, *, now: Optional[datetime] = None) -> int:
    since = _as_utc(now or _now()) - timedelta(days=BEHAVIOR_WINDOW_DAYS)
    created = 0
    for student_id in _active_student_ids(db, course_id):
        count = int(
            db.execute(
                select(func.count())
                .select_from(Communication)
                .where(
                    Communication.course_id == course_id,
                    Communication.student_id == student_id,
                    Communication.category == "BEHAVIOR",
                    Communication.created_at >= since,
                )
            ).scalar_one()
            or 0
        )
        if count < BEHAVIOR_MIN_COUNT:
            continue
        _, was_created = ensure_automated_case(
            db,
            student_id=student_id,
            course_id=course_id,
            title=f"Behavior: {BEHAVIOR_MIN_COUNT} communications in {BEHAVIOR_WINDOW_DAYS} days",
            description=f"{count} behavior communications were recorded in the last {BEHAVIOR_WINDOW_DAYS} days.",
            category="BEHAVIOR",
            severity="MEDIUM",
            rule_id=RULE_BEHAVIOR_30D,
            created_by=created_by,
        )
        created += int(was_created)
    return created


def rule_report_cards(db: Session, course_id: str, created_by: str, *, year: Optional[int] = None) -> int:
    if year is None:
        year = _require_course(db, course_id).year
    created = 0
    for student_id in _active_student_ids(db, course_id):
        card = (
            db.execute(
                select(ReportCard).where(
                    ReportCard.course_id == course_id,
                    ReportCard.student_id == student_id,
                    ReportCard.year == year,
                )
            )
            .scalars()
            .first()
        )
        if not card:
            continue
        scores = card.exam_scores
        if not any(score < REPORT_CARD_MIN_SCORE for score in scores):
            continue
        _, was_created = ensure_automated_case(
            db,
            student_id=student_id,
            course_id=course_id,
            title=f"Report card: exam below {REPORT_CARD_MIN_SCORE}",
            description=f"At least one exam score is below {REPORT_CARD_MIN_SCORE}.",
            category="ACADEMIC_DIFFICULTY",
            severity="HIGH",
            rule_id=RULE_REPORT_CARD_EXAM,
            created_by=created_by,
        )
        created += int(was_created)
    return created


def _reminded_since(db: Session, case_id: str, since: datetime) -> bool:
    return (
        db.execute(
            select(CaseReminder.id)
            .where(CaseReminder.case_id == case_id, CaseReminder.sent_at >= since)
            .limit(1)
        ).scalar_one_or_none()
        is not None
    )


def reminder_target(case: Case) -> Optional[str]:
    if case.assignee_id:
        return case.assignee_id
    watchers = case.watchers or []
    return watchers[0] if watchers else None


def rule_reminders(
    db: Session,
    created_by: str,
    *,
    days: int = DEFAULT_REMINDER_DAYS,
    sender_role: str = "coordinator",
    cooldown_days: int = 0,
    now: Optional[datetime] = None,
) -> int:
    """
    Send an ADMIN communication for every OPEN case not updated in `days` days.

    The case row is left as is. With cooldown_days > 0 a case that already got
    a reminder inside that window is skipped.
    """
    current = _as_utc(now or _now())
    limit = current - timedelta(days=days)
    stale = (
        db.execute(
            select(Case)
            .where(Case.status == "OPEN", Case.updated_at <= limit)
            .order_by(Case.updated_at.asc(), Case.id.asc())
        )
        .scalars()
        .all()
    )

    sent = 0
    for case in stale:
        target = reminder_target(case)
        if not target:
            continue
        if cooldown_days > 0 and _reminded_since(db, case.id, current - timedelta(days=cooldown_days)):
            logger.debug("Skipping reminder for case %s: inside %s-day cooldown", case.id, cooldown_days)
            continue

        communication = Communication(
            course_id=case.course_id,
            student_id=case.student_id,
            sender_id=created_by,
            sender_role=sender_role,
            recipient_id=target,
            year=current.year,
            category="ADMIN",
            title=f'Reminder: open case "{case.title}"',
            body=f"This case has been open for more than {days} days without an update.",
            created_at=current,
        )
        db.add(communication)
        db.flush()
        db.add(
            CaseReminder(
                case_id=case.id,
                communication_id=communication.id,
                target_user_id=target,
                sent_at=current,
            )
        )
        sent += 1

    db.flush()
    return sent


def resolve_course_scope(db: Session, course_id: Optional[str], *, now: Optional[datetime] = None) -> List[Course]:
    if course_id:
        return [_require_course(db, course_id)]
    year = _as_utc(now or _now()).year
    return list(
        db.execute(select(Course).where(Course.year == year).order_by(Course.name.asc(), Course.id.asc()))
        .scalars()
        .all()
    )


def run_alerts(
    db: Session,
    auth: AuthContext,
    *,
    course_id: Optional[str] = None,
    include_reminders: bool = False,
    reminder_days: int = DEFAULT_REMINDER_DAYS,
    reminder_cooldown_days: int = 0,
    commit: bool = False,
    now: Optional[datetime] = None,
) -> AlertRunResult:
    """
    Evaluate every rule for each course in scope, then optionally run the
    reminder sweep once.

    Courses are processed one after another. With commit=True each course is
    committed as soon as its rules finish, so a later failure keeps the cases
    already opened; re-running is safe because case creation is deduplicated.
    """
    current = _as_utc(now or _now())
    courses = resolve_course_scope(db, course_id, now=current)

    created = 0
    for course in courses:
        created += rule_attendance(db, course.id, auth.user_id)
        created += rule_partials(db, course.id, auth.user_id)
        created += rule_behavior(db, course.id, auth.user_id, now=current)
        created += rule_report_cards(db, course.id, auth.user_id, year=course.year)
        if commit:
            db.commit()

    reminders_sent = 0
    if include_reminders:
        reminders_sent = rule_reminders(
            db,
            auth.user_id,
            days=reminder_days,
            sender_role=auth.role,
            cooldown_days=reminder_cooldown_days,
            now=current,
        )
        if commit:
            db.commit()

    logger.info(
        "Alert run by %s scope=%s scanned=%s created=%s reminders=%s",
        auth.user_id,
        course_id or f"year:{current.year}",
        len(courses),
        created,
        reminders_sent,
    )
    return AlertRunResult(scanned=len(courses), created=created, reminders_sent=reminders_sent)
