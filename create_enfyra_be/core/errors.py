"""
Setup errors — the closed failure taxonomy shared by probes and stages.

Probes never raise: they return a ``ProbeResult`` carrying an
``ErrorCode``.  Pipeline stages raise ``SetupError`` with the same
codes, and the CLI is the single place that renders and exits.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Every failure class the scaffolder can report."""

    CONN_REFUSED = "CONN_REFUSED"
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    DB_NOT_FOUND = "DB_NOT_FOUND"
    INSUFFICIENT_SPACE = "INSUFFICIENT_SPACE"
    DIR_EXISTS = "DIR_EXISTS"
    TEMPLATE_FETCH_FAILED = "TEMPLATE_FETCH_FAILED"
    MANIFEST_MISSING = "MANIFEST_MISSING"
    INSTALL_FAILED = "INSTALL_FAILED"
    UNKNOWN = "UNKNOWN"


class SetupError(Exception):
    """A classified, operator-facing failure.

    Args:
        code: Failure class.
        message: One-line description for the operator.
        remediation: Suggestions rendered under the message.
        output: Captured process output (install failures).
        details: Structured extras, e.g. free/required bytes.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        remediation: list[str] | None = None,
        output: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.remediation = list(remediation or [])
        self.output = output
        self.details = dict(details or {})
        self.rollback_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "remediation": self.remediation,
            "output": self.output,
            "details": self.details,
            "rollback_error": self.rollback_error,
        }

    def __repr__(self) -> str:
        return f"<SetupError {self.code.value}: {self.message!r}>"


class RuntimeCheckError(Exception):
    """Raised when a host precondition (Node.js, package manager) is unmet."""

    def __init__(self, message: str, hints: list[str] | None = None) -> None:
        super().__init__(message)
        self.hints = list(hints or [])
