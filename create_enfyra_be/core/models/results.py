"""
Probe and precheck results — immutable outcome records.

A ``ProbeResult`` is produced once per probe call and never persisted.
Probes return these instead of raising.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from create_enfyra_be.core.errors import ErrorCode


class ProbeResult(BaseModel):
    """Outcome of one connectivity probe."""

    model_config = ConfigDict(frozen=True)

    backend: str                    # mysql, postgres, mongodb, redis ...
    target: str = ""                # host:port, never credentials
    role: Literal["primary", "replica", "cache"] = "primary"
    outcome: Literal["success", "failure"] = "success"
    error_code: ErrorCode | None = None
    message: str = ""
    latency_ms: int = 0
    replica: ProbeResult | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == "success"

    @classmethod
    def success(cls, backend: str, target: str, **kwargs: Any) -> ProbeResult:
        return cls(backend=backend, target=target, outcome="success", **kwargs)

    @classmethod
    def failure(
        cls,
        backend: str,
        target: str,
        error_code: ErrorCode,
        message: str,
        **kwargs: Any,
    ) -> ProbeResult:
        return cls(
            backend=backend,
            target=target,
            outcome="failure",
            error_code=error_code,
            message=message,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "target": self.target,
            "role": self.role,
            "outcome": self.outcome,
            "error_code": self.error_code.value if self.error_code else None,
            "message": self.message,
            "latency_ms": self.latency_ms,
            "replica": self.replica.to_dict() if self.replica else None,
        }


class ValidationReport(BaseModel):
    """Primary-store and cache probe results, plus remediation hints.

    ``all_passed`` ignores the replica: a replica failure is reported
    but never changes the primary outcome.
    """

    model_config = ConfigDict(frozen=True)

    database: ProbeResult
    cache: ProbeResult
    hints: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def all_passed(self) -> bool:
        return self.database.ok and self.cache.ok

    def failed_components(self) -> list[str]:
        """Names of the components whose fields must be re-collected."""
        failed: list[str] = []
        if not self.database.ok:
            failed.append("database")
        if not self.cache.ok:
            failed.append("cache")
        return failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_passed": self.all_passed,
            "database": self.database.to_dict(),
            "cache": self.cache.to_dict(),
            "hints": self.hints,
        }


class CapacityResult(BaseModel):
    """Free space on the filesystem that will hold the project."""

    model_config = ConfigDict(frozen=True)

    path: str
    free: int
    total: int
    required: int

    @property
    def has_enough_space(self) -> bool:
        return self.free >= self.required

    @property
    def free_gb(self) -> float:
        return round(self.free / 1024**3, 2)

    @property
    def required_gb(self) -> float:
        return round(self.required / 1024**3, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "free": self.free,
            "total": self.total,
            "required": self.required,
            "has_enough_space": self.has_enough_space,
        }
