"""Domain vocabulary and request-scoped contracts."""

from casewatch.app.domain.contracts import AuthContext  # noqa: F401
