from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from casewatch.app.api.config import reminder_cooldown_days, reminder_days
from casewatch.app.api.deps import require_roles
from casewatch.app.db import get_db
from casewatch.app.domain.contracts import AuthContext
from casewatch.app.services import alerts_service

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


class AlertRunOut(BaseModel):
    ok: bool = True
    scanned: int
    created: int
    reminders_sent: int


@router.post("/run", response_model=AlertRunOut)
def post_alerts_run(
    course_id: Optional[str] = Query(default=None),
    # camelCase spelling used by older clients
    course_id_camel: Optional[str] = Query(default=None, alias="courseId"),
    reminders: int = Query(default=0, ge=0, le=1),
    auth: AuthContext = Depends(require_roles("coordinator", "admin")),
    db: Session = Depends(get_db),
) -> AlertRunOut:
    result = alerts_service.run_alerts(
        db,
        auth,
        course_id=course_id or course_id_camel,
        include_reminders=reminders == 1,
        reminder_days=reminder_days(),
        reminder_cooldown_days=reminder_cooldown_days(),
        commit=True,
    )
    return AlertRunOut(scanned=result.scanned, created=result.created, reminders_sent=result.reminders_sent)
