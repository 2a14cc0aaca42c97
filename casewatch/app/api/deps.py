# casewatch/app/api/deps.py
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from casewatch.app.db import get_db
from casewatch.app.domain.contracts import AuthContext
from casewatch.app.domain.vocab import ROLES
from casewatch.app.models import User


def _lookup_user(db: Session, *, email: Optional[str], user_id: Optional[str]) -> Optional[User]:
    if email:
        normalized = email.strip().lower()
        if not normalized:
            raise HTTPException(status_code=401, detail="Invalid X-User-Email header")
        return db.execute(select(User).where(User.email == normalized)).scalars().first()
    return db.get(User, user_id)


def get_auth_context(
    request: Request,
    db: Session = Depends(get_db),
) -> AuthContext:
    """
    Dev/pilot auth dependency.

    Reads identity from headers:
      - X-User-Email (preferred)
      - X-User-Id    (fallback)

    The user must already exist and be active; the role comes from the user
    row, never from the request. Everything downstream receives the resulting
    AuthContext as an explicit argument.
    """
    email = request.headers.get("X-User-Email")
    user_id = request.headers.get("X-User-Id")
    if not email and not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Email or X-User-Id header")

    user = _lookup_user(db, email=email, user_id=user_id)
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="unknown user")
    if user.role not in ROLES:
        raise HTTPException(status_code=401, detail="user has no valid role")
    return AuthContext(user_id=user.id, role=user.role)


def require_roles(*roles: str) -> Callable[..., AuthContext]:
    """
    FastAPI dependency factory returning the caller's AuthContext when their
    role is one of `roles`.

    Usage:
      @router.post("/alerts/run")
      def run(auth: AuthContext = Depends(require_roles("coordinator", "admin"))):
          ...
    """
    allowed = set(roles)

    def _dep(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if allowed and auth.role not in allowed:
            raise HTTPException(status_code=403, detail="insufficient role")
        return auth

    return _dep
