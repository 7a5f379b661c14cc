"""Trace recording for compute passes.

The recorder is an accumulator filled during the engine's single pass; it
never triggers a second walk over the graph. "Before" values always come
from the state the pass started from, so a node updated twice within one
pass (dirty, then recomputed) still diffs against what the caller saw.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from taxgraph.contracts.enums import SkipReason
from taxgraph.contracts.events import Trigger
from taxgraph.contracts.session import NodeSnapshot, SessionState
from taxgraph.contracts.trace import NodeChange, SkipRecord, TraceFrame
from taxgraph.contracts.types import InstanceID, NodeValue
from taxgraph.contracts.validation import ValidationResult
from taxgraph.core.canonical import state_hash
from taxgraph.engine.clock import Clock


class TraceRecorder:
    """Accumulates one TraceFrame while a pass runs.

    Example:
        recorder = TraceRecorder(prior_state, trigger=event, clock=clock)
        recorder.visit("C")
        recorder.record("C", new_snapshot, dependency_snapshot={"A": 1, "B": 2})
        frame = recorder.finish(new_state)
    """

    def __init__(
        self,
        before: Mapping[InstanceID, NodeSnapshot],
        *,
        trigger: Trigger | None,
        clock: Clock,
        record_state_hash: bool = True,
    ) -> None:
        self._before = before
        self._trigger = trigger
        self._clock = clock
        self._record_state_hash = record_state_hash
        self._started_at = clock.now()
        self._started_mono = clock.monotonic()
        self._visit_order: list[InstanceID] = []
        self._changes: dict[InstanceID, NodeChange] = {}
        self._skipped: dict[InstanceID, SkipRecord] = {}
        self._removed: tuple[InstanceID, ...] = ()

    @property
    def visit_order(self) -> tuple[InstanceID, ...]:
        return tuple(self._visit_order)

    def visit(self, instance_id: InstanceID) -> None:
        """Note that the pass evaluated this instance."""
        self._visit_order.append(instance_id)

    def record(
        self,
        instance_id: InstanceID,
        after: NodeSnapshot,
        *,
        dependency_snapshot: Mapping[InstanceID, NodeValue] | None = None,
        always: bool = False,
    ) -> None:
        """Record the instance's final snapshot if it differs from before.

        always=True records it regardless (the trigger's own node).
        """
        before = self._before.get(instance_id)
        if not always and not after.differs_from(before):
            self._changes.pop(instance_id, None)
            return
        self._changes[instance_id] = NodeChange(
            instance_id=instance_id,
            before=before,
            after=after,
            dependency_snapshot=MappingProxyType(dict(dependency_snapshot)) if dependency_snapshot is not None else None,
        )

    def skip(self, instance_id: InstanceID, reason: SkipReason, detail: str = "") -> None:
        self._skipped[instance_id] = SkipRecord(instance_id=instance_id, reason=reason, detail=detail)

    def removed(self, instance_ids: Iterable[InstanceID]) -> None:
        """Note instances dropped from the session by re-materialization."""
        self._removed = tuple(instance_ids)

    def finish(self, state: SessionState) -> TraceFrame:
        summary = state.summarize()
        return TraceFrame(
            trigger=self._trigger,
            started_at=self._started_at,
            completed_at=self._clock.now(),
            duration_ms=self._elapsed_ms(),
            visit_order=tuple(self._visit_order),
            changes=MappingProxyType(dict(self._changes)),
            skipped=MappingProxyType(dict(self._skipped)),
            removed=self._removed,
            summary=summary,
            state_hash=state_hash(state) if self._record_state_hash else None,
        )

    def reject(self, state: SessionState, rejection: ValidationResult) -> TraceFrame:
        """Frame for an event that failed validation: nothing visited, nothing changed."""
        return TraceFrame(
            trigger=self._trigger,
            started_at=self._started_at,
            completed_at=self._clock.now(),
            duration_ms=self._elapsed_ms(),
            visit_order=(),
            summary=state.summarize(),
            state_hash=state_hash(state) if self._record_state_hash else None,
            rejection=rejection,
        )

    def _elapsed_ms(self) -> float:
        return (self._clock.monotonic() - self._started_mono) * 1000.0
