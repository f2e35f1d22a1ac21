"""
Outcome models — the decision contract.

Every check returns a ``CheckResult``; the admission controller folds
the first failing one into an ``AdmissionResponse``; the reconciler
returns a ``ReconcileOutcome`` to its scheduler.  Checks never raise
past their caller: failures are captured here.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ErrorKind(StrEnum):
    """Why a request was rejected."""

    NOT_FOUND = "not_found"
    INVALID = "invalid"
    CONSTRAINT_VIOLATION = "constraint_violation"
    POLICY_VIOLATION = "policy_violation"
    INTERNAL = "internal"
    BAD_REQUEST = "bad_request"


class CheckResult(BaseModel):
    """Outcome of a single admission rule."""

    ok: bool = True
    rule: str = ""
    reason: ErrorKind | None = None
    message: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return not self.ok

    @classmethod
    def passed(cls, rule: str = "") -> CheckResult:
        return cls(ok=True, rule=rule)

    @classmethod
    def rejected(
        cls,
        rule: str,
        reason: ErrorKind,
        message: str,
        warnings: list[str] | None = None,
    ) -> CheckResult:
        return cls(
            ok=False,
            rule=rule,
            reason=reason,
            message=message,
            warnings=warnings or [],
        )


class AdmissionResponse(BaseModel):
    """Accept (optionally with warnings) or a structured rejection."""

    allowed: bool
    operation: str = ""
    rule: str = ""
    reason: ErrorKind | None = None
    message: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def internal(self) -> bool:
        """Whether the rejection means "the system is unhealthy"."""
        return self.reason == ErrorKind.INTERNAL

    @classmethod
    def accept(cls, operation: str, warnings: list[str] | None = None) -> AdmissionResponse:
        return cls(allowed=True, operation=operation, warnings=warnings or [])

    @classmethod
    def deny(cls, operation: str, result: CheckResult, prefix: str = "") -> AdmissionResponse:
        message = f"{prefix}: {result.message}" if prefix else result.message
        return cls(
            allowed=False,
            operation=operation,
            rule=result.rule,
            reason=result.reason,
            message=message,
            warnings=list(result.warnings),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ReconcileOutcome(BaseModel):
    """What the scheduler should do after a reconcile pass."""

    action: Literal["done", "requeue_after", "requeue", "fatal"] = "done"
    delay: float = 0.0
    message: str = ""

    @property
    def requeue_wanted(self) -> bool:
        return self.action in ("requeue_after", "requeue")

    @classmethod
    def done(cls, message: str = "") -> ReconcileOutcome:
        return cls(action="done", message=message)

    @classmethod
    def requeue_after(cls, delay: float, message: str = "") -> ReconcileOutcome:
        return cls(action="requeue_after", delay=delay, message=message)

    @classmethod
    def requeue_immediately(cls, message: str = "") -> ReconcileOutcome:
        return cls(action="requeue", message=message)

    @classmethod
    def fatal(cls, message: str) -> ReconcileOutcome:
        return cls(action="fatal", message=message)
