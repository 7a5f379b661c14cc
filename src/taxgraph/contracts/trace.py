"""Audit contracts produced by every compute pass.

A TraceFrame is an ephemeral per-call artifact handed back next to the new
state. It is not part of SessionState; keeping a history of frames is the
caller's responsibility.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from taxgraph.contracts.enums import SkipReason
from taxgraph.contracts.events import Trigger
from taxgraph.contracts.session import NodeSnapshot, SessionState, StatusSummary
from taxgraph.contracts.types import InstanceID, NodeValue
from taxgraph.contracts.validation import ValidationResult


def _empty_mapping() -> Mapping[Any, Any]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class NodeChange:
    """Before/after record for one node whose value or status changed.

    before is captured from the state the pass started from (None for an
    instance materialized by this pass). dependency_snapshot holds the
    dependency values a computed node read when it was evaluated.
    """

    instance_id: InstanceID
    before: NodeSnapshot | None
    after: NodeSnapshot
    dependency_snapshot: Mapping[InstanceID, NodeValue] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "instance_id": self.instance_id,
            "before": self.before.to_dict() if self.before is not None else None,
            "after": self.after.to_dict(),
        }
        if self.dependency_snapshot is not None:
            data["dependency_snapshot"] = dict(self.dependency_snapshot)
        return data


@dataclass(frozen=True, slots=True)
class SkipRecord:
    """Why a node reached by the pass produced no computed value."""

    instance_id: InstanceID
    reason: SkipReason
    detail: str = ""


@dataclass(frozen=True, slots=True)
class TraceFrame:
    """Audit record of one compute pass.

    trigger is None for session (re)initialization. rejection is set when
    the triggering event failed validation and nothing was applied.
    """

    trigger: Trigger | None
    started_at: datetime
    completed_at: datetime
    duration_ms: float
    visit_order: tuple[InstanceID, ...]
    changes: Mapping[InstanceID, NodeChange] = field(default_factory=_empty_mapping)
    skipped: Mapping[InstanceID, SkipRecord] = field(default_factory=_empty_mapping)
    removed: tuple[InstanceID, ...] = ()
    summary: StatusSummary = field(default_factory=StatusSummary)
    state_hash: str | None = None
    rejection: ValidationResult | None = None

    @property
    def changed_ids(self) -> set[InstanceID]:
        return set(self.changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger.to_dict() if self.trigger is not None else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "visit_order": list(self.visit_order),
            "changes": {instance_id: change.to_dict() for instance_id, change in self.changes.items()},
            "skipped": {
                instance_id: {"reason": record.reason.value, "detail": record.detail} for instance_id, record in self.skipped.items()
            },
            "removed": list(self.removed),
            "state_hash": self.state_hash,
            "rejection": self.rejection.to_dict() if self.rejection is not None else None,
        }


@dataclass(frozen=True, slots=True)
class EngineResult:
    """What every engine call hands back: the new state plus its trace."""

    success: bool
    current_state: SessionState
    frame: TraceFrame
    summary: StatusSummary

    @property
    def state(self) -> SessionState:
        """Alias of current_state."""
        return self.current_state
