from __future__ import annotations

from dataclasses import dataclass

from casewatch.app.domain.vocab import STAFF_ROLES, SUPERVISOR_ROLES


@dataclass(frozen=True)
class AuthContext:
    """Caller identity, resolved once per request and passed explicitly."""

    user_id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_supervisor(self) -> bool:
        return self.role in SUPERVISOR_ROLES
