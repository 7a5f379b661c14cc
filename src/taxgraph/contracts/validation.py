"""Structured results of event validation.

Validation never raises for expected failures; callers inspect
ValidationResult.valid and the list of issues.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from taxgraph.contracts.enums import ValidationCode
from taxgraph.contracts.types import InstanceID


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One reason an event was rejected."""

    instance_id: InstanceID
    code: ValidationCode
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"instance_id": self.instance_id, "code": self.code.value, "message": self.message}


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Accept/reject decision for one event."""

    valid: bool
    errors: tuple[ValidationIssue, ...] = ()

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> ValidationResult:
        errors = tuple(issues)
        return cls(valid=not errors, errors=errors)

    @property
    def codes(self) -> list[ValidationCode]:
        return [issue.code for issue in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": [issue.to_dict() for issue in self.errors]}
