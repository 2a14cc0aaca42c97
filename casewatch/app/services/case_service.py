from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casewatch.app.domain.contracts import AuthContext
from casewatch.app.domain.vocab import CASE_CATEGORIES, CASE_SEVERITIES, CASE_STATUSES, STAFF_ROLES
from casewatch.app.models import (
    Case,
    CaseChecklistItem,
    CaseReply,
    Course,
    User,
    case_open_rule_key,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("status", "severity", "assignee_id")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_case(db: Session, case_id: str) -> Case:
    row = db.get(Case, case_id)
    if not row:
        raise HTTPException(status_code=404, detail="case not found")
    return row


def _require_student(db: Session, student_id: str) -> User:
    user = db.get(User, student_id)
    if not user or user.role != "student":
        raise HTTPException(status_code=404, detail="student not found")
    return user


def _require_assignee(db: Session, assignee_id: str) -> User:
    user = db.get(User, assignee_id)
    if not user or not user.active or user.role not in STAFF_ROLES:
        raise HTTPException(status_code=404, detail="assignee not found")
    return user


def _require_choice(value: str, choices, field: str) -> str:
    if value not in choices:
        raise HTTPException(status_code=400, detail=f"invalid {field}")
    return value


def _taught_course_ids(db: Session, teacher_id: str) -> Set[str]:
    return set(db.execute(select(Course.id).where(Course.teacher_id == teacher_id)).scalars().all())


def _teacher_can_see(case: Case, auth: AuthContext, taught: Set[str]) -> bool:
    return (
        case.created_by == auth.user_id
        or auth.user_id in (case.watchers or [])
        or (case.course_id is not None and case.course_id in taught)
    )


def _require_visible_case(db: Session, auth: AuthContext, case_id: str) -> Case:
    case = _require_case(db, case_id)
    if auth.role == "teacher" and not _teacher_can_see(case, auth, _taught_course_ids(db, auth.user_id)):
        raise HTTPException(status_code=403, detail="not allowed to access this case")
    return case


def _can_open_case(db: Session, auth: AuthContext, course_id: Optional[str]) -> bool:
    if auth.role != "teacher":
        return auth.is_supervisor
    # teachers must tie the case to one of their own courses
    if not course_id:
        return False
    course = db.get(Course, course_id)
    return bool(course and course.teacher_id == auth.user_id)


def create_case(
    db: Session,
    auth: AuthContext,
    *,
    student_id: str,
    course_id: Optional[str],
    title: str,
    description: Optional[str],
    category: str,
    severity: str = "MEDIUM",
    checklist: Optional[List[str]] = None,
    assignee_id: Optional[str] = None,
) -> Case:
    _require_choice(category, CASE_CATEGORIES, "category")
    _require_choice(severity, CASE_SEVERITIES, "severity")
    if course_id and not db.get(Course, course_id):
        raise HTTPException(status_code=404, detail="course not found")
    if not _can_open_case(db, auth, course_id):
        raise HTTPException(status_code=403, detail="not allowed to open a case here")
    _require_student(db, student_id)
    if assignee_id:
        _require_assignee(db, assignee_id)

    case = Case(
        student_id=student_id,
        course_id=course_id or None,
        created_by=auth.user_id,
        watchers=[auth.user_id],
        assignee_id=assignee_id or None,
        category=category,
        severity=severity,
        status="OPEN",
        source="MANUAL",
        title=title,
        description=description or "",
    )
    case.checklist = [
        CaseChecklistItem(position=index, label=label, done=False)
        for index, label in enumerate(checklist or [])
    ]
    db.add(case)
    db.flush()
    logger.info("Manual case %s opened by %s for student %s", case.id, auth.user_id, student_id)
    return case


def list_cases(
    db: Session,
    auth: AuthContext,
    *,
    status: Optional[str] = None,
    category: Optional[str] = None,
    student_id: Optional[str] = None,
    course_id: Optional[str] = None,
    severity: Optional[str] = None,
) -> List[Case]:
    stmt = select(Case)
    if status:
        stmt = stmt.where(Case.status == status)
    if category:
        stmt = stmt.where(Case.category == category)
    if student_id:
        stmt = stmt.where(Case.student_id == student_id)
    if course_id:
        stmt = stmt.where(Case.course_id == course_id)
    if severity:
        stmt = stmt.where(Case.severity == severity)

    rows = db.execute(stmt.order_by(Case.updated_at.desc(), Case.id.asc())).scalars().all()
    if auth.role == "teacher":
        taught = _taught_course_ids(db, auth.user_id)
        rows = [row for row in rows if _teacher_can_see(row, auth, taught)]
    return list(rows)


def get_case(db: Session, auth: AuthContext, case_id: str) -> Case:
    return _require_visible_case(db, auth, case_id)


def _apply_status(db: Session, case: Case, next_status: str) -> None:
    _require_choice(next_status, CASE_STATUSES, "status")
    if next_status == case.status:
        return
    if next_status != "OPEN" or case.source != "AUTOMATION" or not case.rule_id:
        case.status = next_status
        case.open_rule_key = None
        return

    key = case_open_rule_key(case.student_id, case.course_id, case.rule_id)
    holder = db.execute(select(Case.id).where(Case.open_rule_key == key, Case.id != case.id)).scalar_one_or_none()
    if holder:
        raise HTTPException(status_code=409, detail=f"case {holder} is already open for this rule")
    case.status = next_status
    case.open_rule_key = key


def update_case(db: Session, auth: AuthContext, case_id: str, changes: Dict[str, Any]) -> Case:
    """
    Partial update of status, severity and assignee. Keys absent from
    `changes` are left alone; an explicit None assignee clears it.
    """
    case = _require_visible_case(db, auth, case_id)
    patch = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}

    if auth.role == "teacher" and patch.get("assignee_id"):
        raise HTTPException(status_code=403, detail="teachers cannot reassign cases")

    severity = patch.get("severity")
    if severity is not None:
        _require_choice(severity, CASE_SEVERITIES, "severity")
    assignee_id = patch.get("assignee_id") or None
    if assignee_id:
        _require_assignee(db, assignee_id)

    if severity is not None:
        case.severity = severity
    if "assignee_id" in patch:
        case.assignee_id = assignee_id
    case.updated_at = _now()
    db.flush()

    next_status = patch.get("status")
    if next_status is None:
        return case
    # only the open_rule_key can collide here
    try:
        with db.begin_nested():
            _apply_status(db, case, next_status)
            db.flush()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="another case is already open for this rule") from exc
    return case


def add_reply(db: Session, auth: AuthContext, case_id: str, body: str) -> CaseReply:
    text = (body or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="empty reply")
    case = _require_visible_case(db, auth, case_id)

    now = _now()
    reply = CaseReply(case_id=case.id, user_id=auth.user_id, role=auth.role, body=text, created_at=now)
    db.add(reply)
    case.updated_at = now
    db.flush()
    return reply


def list_replies(db: Session, auth: AuthContext, case_id: str) -> List[CaseReply]:
    _require_visible_case(db, auth, case_id)
    return list(
        db.execute(
            select(CaseReply)
            .where(CaseReply.case_id == case_id)
            .order_by(CaseReply.created_at.asc(), CaseReply.id.asc())
        )
        .scalars()
        .all()
    )


def set_checklist_item(db: Session, auth: AuthContext, case_id: str, item_id: str, *, done: bool) -> CaseChecklistItem:
    case = _require_visible_case(db, auth, case_id)
    item = db.get(CaseChecklistItem, item_id)
    if not item or item.case_id != case.id:
        raise HTTPException(status_code=404, detail="checklist item not found")

    now = _now()
    item.done = done
    item.done_at = now if done else None
    item.done_by = auth.user_id if done else None
    case.updated_at = now
    db.flush()
    return item


def serialize_checklist_item(item: CaseChecklistItem) -> dict:
    return {
        "id": item.id,
        "label": item.label,
        "done": item.done,
        "done_at": item.done_at,
        "done_by": item.done_by,
    }


def serialize_case(row: Case) -> dict:
    return {
        "id": row.id,
        "student_id": row.student_id,
        "course_id": row.course_id,
        "created_by": row.created_by,
        "assignee_id": row.assignee_id,
        "watchers": list(row.watchers or []),
        "category": row.category,
        "severity": row.severity,
        "status": row.status,
        "source": row.source,
        "rule_id": row.rule_id,
        "title": row.title,
        "description": row.description,
        "checklist": [serialize_checklist_item(item) for item in row.checklist],
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def serialize_reply(row: CaseReply) -> dict:
    return {
        "id": row.id,
        "case_id": row.case_id,
        "user_id": row.user_id,
        "role": row.role,
        "body": row.body,
        "created_at": row.created_at,
    }
