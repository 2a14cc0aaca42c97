from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from casewatch.app.api.deps import require_roles
from casewatch.app.db import get_db
from casewatch.app.domain.contracts import AuthContext
from casewatch.app.services import case_service

router = APIRouter(prefix="/api/cases", tags=["cases"])

CaseCategory = Literal["ACADEMIC_DIFFICULTY", "BEHAVIOR", "ATTENDANCE", "ADMIN", "OTHER"]
CaseSeverity = Literal["LOW", "MEDIUM", "HIGH"]
CaseStatus = Literal["OPEN", "IN_PROGRESS", "RESOLVED", "ARCHIVED"]

staff_only = require_roles("teacher", "coordinator", "admin")


class CaseCreateIn(BaseModel):
    student_id: str
    course_id: Optional[str] = None
    title: str = Field(..., min_length=3, max_length=300)
    description: Optional[str] = None
    category: CaseCategory
    severity: CaseSeverity = "MEDIUM"
    checklist: List[str] = Field(default_factory=list)
    assignee_id: Optional[str] = None


class CaseUpdateIn(BaseModel):
    status: Optional[CaseStatus] = None
    severity: Optional[CaseSeverity] = None
    assignee_id: Optional[str] = None


class CaseReplyIn(BaseModel):
    body: str = Field(..., max_length=4000)


class ChecklistItemIn(BaseModel):
    done: bool


@router.post("")
def post_case(req: CaseCreateIn, auth: AuthContext = Depends(staff_only), db: Session = Depends(get_db)):
    case = case_service.create_case(
        db,
        auth,
        student_id=req.student_id,
        course_id=req.course_id,
        title=req.title,
        description=req.description,
        category=req.category,
        severity=req.severity,
        checklist=req.checklist,
        assignee_id=req.assignee_id,
    )
    db.commit()
    return {"ok": True, "case": case_service.serialize_case(case)}


@router.get("")
def list_cases(
    status: Optional[CaseStatus] = Query(default=None),
    category: Optional[CaseCategory] = Query(default=None),
    student_id: Optional[str] = Query(default=None),
    course_id: Optional[str] = Query(default=None),
    severity: Optional[CaseSeverity] = Query(default=None),
    auth: AuthContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    rows = case_service.list_cases(
        db,
        auth,
        status=status,
        category=category,
        student_id=student_id,
        course_id=course_id,
        severity=severity,
    )
    return {"rows": [case_service.serialize_case(row) for row in rows]}


@router.get("/{case_id}")
def get_case(case_id: str, auth: AuthContext = Depends(staff_only), db: Session = Depends(get_db)):
    return case_service.serialize_case(case_service.get_case(db, auth, case_id))


@router.put("/{case_id}")
def put_case(case_id: str, req: CaseUpdateIn, auth: AuthContext = Depends(staff_only), db: Session = Depends(get_db)):
    changes = {field: getattr(req, field) for field in req.model_fields_set}
    case = case_service.update_case(db, auth, case_id, changes)
    db.commit()
    return {"ok": True, "case": case_service.serialize_case(case)}


@router.post("/{case_id}/replies")
def post_case_reply(case_id: str, req: CaseReplyIn, auth: AuthContext = Depends(staff_only), db: Session = Depends(get_db)):
    reply = case_service.add_reply(db, auth, case_id, req.body)
    db.commit()
    return {"ok": True, "reply": case_service.serialize_reply(reply)}


@router.get("/{case_id}/replies")
def get_case_replies(case_id: str, auth: AuthContext = Depends(staff_only), db: Session = Depends(get_db)):
    rows = case_service.list_replies(db, auth, case_id)
    return {"rows": [case_service.serialize_reply(row) for row in rows]}


@router.post("/{case_id}/checklist/{item_id}")
def post_checklist_item(
    case_id: str,
    item_id: str,
    req: ChecklistItemIn,
    auth: AuthContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    item = case_service.set_checklist_item(db, auth, case_id, item_id, done=req.done)
    db.commit()
    return {"ok": True, "item": case_service.serialize_checklist_item(item)}
