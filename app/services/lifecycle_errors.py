"""Error kinds raised by lifecycle commands.

Every kind carries a machine-readable ``code``, a human-readable ``message`` and
optional ``details``; ``status_code`` is the HTTP status the API renders it with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass(eq=False)
class LifecycleError(Exception):
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    code: ClassVar[str] = "lifecycle_error"
    status_code: ClassVar[int] = 400

    def __str__(self) -> str:
        return self.message


class ValidationError(LifecycleError):
    code = "validation_error"
    status_code = 422


class MissingReason(ValidationError):
    code = "missing_reason"


class NotFound(LifecycleError):
    code = "not_found"
    status_code = 404


class InvalidTransition(LifecycleError):
    code = "invalid_transition"
    status_code = 409


class AlreadyConverted(InvalidTransition):
    code = "already_converted"


class AmendmentConflict(InvalidTransition):
    code = "amendment_conflict"


class AlreadyPaid(LifecycleError):
    code = "already_paid"
    status_code = 409


class ConcurrentModification(LifecycleError):
    code = "concurrent_modification"
    status_code = 409


class AuditWriteFailure(LifecycleError):
    code = "audit_write_failure"
    status_code = 500


__all__ = [
    "AlreadyConverted",
    "AlreadyPaid",
    "AmendmentConflict",
    "AuditWriteFailure",
    "ConcurrentModification",
    "InvalidTransition",
    "LifecycleError",
    "MissingReason",
    "NotFound",
    "ValidationError",
]
