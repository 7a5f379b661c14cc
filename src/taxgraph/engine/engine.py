# src/taxgraph/engine/engine.py
"""TaxGraphEngine: the facade that owns the catalog and runs compute passes.

Every pass is a single synchronous walk:

1. Validate the trigger (rejections return the prior state untouched)
2. Apply it to its target instance
3. Mark transitive dependents dirty, breadth-first, passing through
   overridden instances without marking them
4. Recompute the marked instances in the session's topological order
5. Build the new SessionState and the TraceFrame

The engine never mutates a SessionState. The only mutable state it holds
is the catalog (guarded by the catalog's own lock) and the plan cache.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog

from taxgraph.contracts.enums import NodeStatus, SkipReason
from taxgraph.contracts.errors import ConstraintViolationError, DependencyErrorPropagated
from taxgraph.contracts.events import ClearOverride, InputEvent
from taxgraph.contracts.nodes import NodeDefinition
from taxgraph.contracts.session import NodeSnapshot, SessionParameters, SessionState
from taxgraph.contracts.trace import EngineResult
from taxgraph.contracts.types import InstanceID
from taxgraph.contracts.validation import ValidationResult
from taxgraph.core.config import EngineSettings, load_settings
from taxgraph.core.dag.catalog import NodeCatalog
from taxgraph.core.dag.graph import DependencyGraph
from taxgraph.core.dag.models import NodeInstance
from taxgraph.core.logging import configure_logging, get_logger
from taxgraph.engine.clock import DEFAULT_CLOCK, Clock
from taxgraph.engine.context import EngineRuleContext
from taxgraph.engine.materialize import PlanCache, SessionPlan
from taxgraph.engine.trace import TraceRecorder
from taxgraph.engine.validator import EventValidator

logger = get_logger(__name__)


class TaxGraphEngine:
    """Incremental computation over a registered node graph.

    Example:
        engine = TaxGraphEngine()
        engine.register_nodes([
            input_node("A"),
            input_node("B"),
            computed_node("C", ["A", "B"], lambda ctx: ctx.get("A") + ctx.get("B")),
        ])
        params = SessionParameters(tax_year="2025", filing_status="single")
        result = engine.initialize_session(params)
        result = engine.process(InputEvent(InstanceID("A"), 100), result.state, params)
        assert result.state.value("C") == 100
    """

    def __init__(self, settings: EngineSettings | None = None, clock: Clock | None = None) -> None:
        self._settings = settings if settings is not None else EngineSettings()
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._catalog = NodeCatalog()
        self._plans = PlanCache()

    @classmethod
    def from_settings(cls, config_path: Path, clock: Clock | None = None) -> TaxGraphEngine:
        """Build an engine from a settings file and apply its logging section.

        This is the process-level entry point: it loads settings through
        load_settings() (so TAXGRAPH_* environment overrides apply), calls
        configure_logging() with settings.logging, and returns an engine
        using the loaded settings. Constructing TaxGraphEngine directly
        leaves logging configuration to the caller.

        Raises:
            FileNotFoundError: config_path does not exist
            ValidationError: the settings fail validation
        """
        settings = load_settings(config_path)
        configure_logging(settings.logging)
        return cls(settings=settings, clock=clock)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def catalog(self) -> NodeCatalog:
        return self._catalog

    @property
    def graph(self) -> DependencyGraph:
        """The currently published dependency graph."""
        return self._catalog.graph

    # ===== REGISTRATION =====

    def register_nodes(self, definitions: Iterable[NodeDefinition]) -> None:
        """Register a batch of definitions.

        Raises:
            GraphValidationError: Duplicate id, unknown dependency, or cycle.
                The catalog is unchanged when this is raised.
        """
        self._catalog.register(definitions)
        self._plans.clear()

    def unregister_nodes(self, node_ids: Iterable[str]) -> None:
        """Retract definitions (and the second-filer mirrors of repeatable ones).

        Sessions built before the retraction must be passed through
        reinitialize_session before further processing.
        """
        self._catalog.unregister(node_ids)
        self._plans.clear()

    def catalog_hash(self) -> str:
        return self._catalog.catalog_hash()

    # ===== SESSIONS =====

    def initialize_session(self, params: SessionParameters) -> EngineResult:
        """Materialize a session, apply input defaults, and compute everything."""
        plan = self._plans.get(self._catalog.graph, params)
        log = logger.bind(session_key=params.session_key)
        recorder = self._recorder({}, trigger=None)

        working: dict[InstanceID, NodeSnapshot] = {}
        pending: list[InstanceID] = []
        for instance_id in plan.order:
            definition = plan.instance(instance_id).definition
            if definition.is_input:
                snapshot = NodeSnapshot(instance_id, definition.default_value, NodeStatus.CLEAN)
                working[instance_id] = snapshot
                recorder.record(instance_id, snapshot)
            else:
                working[instance_id] = NodeSnapshot(instance_id, None, NodeStatus.DIRTY)
                pending.append(instance_id)

        self._recompute(plan, params, working, pending, recorder, log)
        return self._complete(working, recorder, log, "session_initialized")

    def reinitialize_session(self, params: SessionParameters, existing_state: Mapping[InstanceID, NodeSnapshot]) -> EngineResult:
        """Re-materialize a session after the catalog changed.

        Inputs and overrides already in existing_state are carried over,
        newly materialized inputs take their defaults, every other computed
        instance is recomputed, and instances that are no longer
        materialized are dropped (listed in frame.removed).
        """
        plan = self._plans.get(self._catalog.graph, params)
        log = logger.bind(session_key=params.session_key)
        recorder = self._recorder(existing_state, trigger=None)

        working: dict[InstanceID, NodeSnapshot] = {}
        pending: list[InstanceID] = []
        for instance_id in plan.order:
            definition = plan.instance(instance_id).definition
            prior = existing_state.get(instance_id)
            if prior is not None and prior.status == NodeStatus.OVERRIDE:
                working[instance_id] = prior
                recorder.skip(instance_id, SkipReason.OVERRIDE_PROTECTED, "carried over from the existing state")
            elif definition.is_input:
                value = prior.value if prior is not None else definition.default_value
                snapshot = NodeSnapshot(instance_id, value, NodeStatus.CLEAN)
                working[instance_id] = snapshot
                recorder.record(instance_id, snapshot)
            else:
                last_value = prior.value if prior is not None else None
                working[instance_id] = NodeSnapshot(instance_id, last_value, NodeStatus.DIRTY)
                pending.append(instance_id)

        recorder.removed(instance_id for instance_id in existing_state if instance_id not in plan)
        self._recompute(plan, params, working, pending, recorder, log)
        return self._complete(working, recorder, log, "session_initialized", reinitialized=True)

    # ===== EVENTS =====

    def validate(self, event: InputEvent, state: Mapping[InstanceID, NodeSnapshot]) -> ValidationResult:
        """Check an event against a state without applying it."""
        return EventValidator(self._catalog.graph).validate(event, state)

    def process(self, event: InputEvent, state: SessionState, params: SessionParameters) -> EngineResult:
        """Apply one input event and recompute everything it affects.

        An invalid event is not raised: the result carries success=False,
        the prior state object itself, and the rejection on the frame.

        Raises:
            SessionMismatchError: state was not produced for params and the current catalog
        """
        graph = self._catalog.graph
        plan = self._plan_for(graph, state, params)
        log = logger.bind(session_key=params.session_key)
        recorder = self._recorder(state, trigger=event)

        validation = EventValidator(graph).validate(event, state)
        if not validation.valid:
            return self._reject(state, validation, recorder, log, event.instance_id)

        target = event.instance_id
        if event.is_override:
            applied = NodeSnapshot(target, event.value, NodeStatus.OVERRIDE, override_note=event.override_note)
        else:
            applied = NodeSnapshot(target, event.value, NodeStatus.CLEAN)

        working = dict(state)
        working[target] = applied
        recorder.record(target, applied, always=True)

        pending = self._mark_dirty(plan, working, target, recorder)
        self._recompute(plan, params, working, pending, recorder, log)
        return self._complete(working, recorder, log, "event_processed", instance_id=target, source=event.source.value)

    def clear_override(self, instance_id: str, state: SessionState, params: SessionParameters) -> EngineResult:
        """End a standing override.

        A computed instance is recomputed together with its dependents; an
        input instance returns to clean status keeping its value.

        Raises:
            SessionMismatchError: state was not produced for params and the current catalog
        """
        graph = self._catalog.graph
        plan = self._plan_for(graph, state, params)
        log = logger.bind(session_key=params.session_key)
        request = ClearOverride(InstanceID(instance_id), timestamp=self._clock.now())
        recorder = self._recorder(state, trigger=request)

        validation = EventValidator(graph).validate_clear(request, state)
        if not validation.valid:
            return self._reject(state, validation, recorder, log, request.instance_id)

        target = request.instance_id
        prior = state[target]
        working = dict(state)

        if plan.instance(target).definition.is_input:
            cleared = NodeSnapshot(target, prior.value, NodeStatus.CLEAN)
            working[target] = cleared
            recorder.record(target, cleared, always=True)
        else:
            # Status always leaves OVERRIDE here, so the target lands in changes
            working[target] = NodeSnapshot(target, prior.value, NodeStatus.DIRTY)
            pending = self._mark_dirty(plan, working, target, recorder, include_source=True)
            self._recompute(plan, params, working, pending, recorder, log)

        return self._complete(working, recorder, log, "event_processed", instance_id=target, source="clear_override")

    # ===== PASS INTERNALS =====

    def _recorder(self, before: Mapping[InstanceID, NodeSnapshot], *, trigger: InputEvent | ClearOverride | None) -> TraceRecorder:
        return TraceRecorder(
            before,
            trigger=trigger,
            clock=self._clock,
            record_state_hash=self._settings.record_state_hash,
        )

    def _plan_for(self, graph: DependencyGraph, state: Mapping[InstanceID, NodeSnapshot], params: SessionParameters) -> SessionPlan:
        plan = self._plans.get(graph, params)
        if self._settings.verify_session_shape:
            plan.check_state(frozenset(state))
        return plan

    def _reject(
        self,
        state: SessionState,
        validation: ValidationResult,
        recorder: TraceRecorder,
        log: structlog.stdlib.BoundLogger,
        instance_id: InstanceID,
    ) -> EngineResult:
        log.info("event_rejected", instance_id=instance_id, codes=[code.value for code in validation.codes])
        frame = recorder.reject(state, validation)
        return EngineResult(success=False, current_state=state, frame=frame, summary=frame.summary)

    def _mark_dirty(
        self,
        plan: SessionPlan,
        working: dict[InstanceID, NodeSnapshot],
        source: InstanceID,
        recorder: TraceRecorder,
        *,
        include_source: bool = False,
    ) -> list[InstanceID]:
        """Mark every transitive dependent of source dirty.

        Overridden instances are never marked; propagation continues
        through them so their own dependents still recompute from the
        override's value. Returns the marked ids in evaluation order.
        """
        marked: set[InstanceID] = {source} if include_source else set()
        seen: set[InstanceID] = {source}
        queue: deque[InstanceID] = deque([source])

        while queue:
            current = queue.popleft()
            for dependent in plan.dependents(current):
                if dependent in seen:
                    continue
                seen.add(dependent)
                queue.append(dependent)
                snapshot = working[dependent]
                if snapshot.status == NodeStatus.OVERRIDE:
                    recorder.skip(dependent, SkipReason.OVERRIDE_PROTECTED, f"upstream change from '{source}'")
                    continue
                marked.add(dependent)
                working[dependent] = NodeSnapshot(dependent, snapshot.value, NodeStatus.DIRTY)

        return sorted(marked, key=plan.graph.position)

    def _recompute(
        self,
        plan: SessionPlan,
        params: SessionParameters,
        working: dict[InstanceID, NodeSnapshot],
        pending: list[InstanceID],
        recorder: TraceRecorder,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Evaluate pending instances in order, writing results into working.

        pending must already be in evaluation order; every dependency of an
        entry is either settled or appears earlier in the list.
        """
        strict = self._settings.strict_dependency_access
        for instance_id in pending:
            instance = plan.instance(instance_id)
            recorder.visit(instance_id)
            context = EngineRuleContext(instance, params, working, strict=strict)
            reads = context.dependency_values()
            snapshot = self._evaluate(instance, context, working, recorder, log)
            working[instance_id] = snapshot
            recorder.record(instance_id, snapshot, dependency_snapshot=reads)

    def _evaluate(
        self,
        instance: NodeInstance,
        context: EngineRuleContext,
        working: Mapping[InstanceID, NodeSnapshot],
        recorder: TraceRecorder,
        log: structlog.stdlib.BoundLogger,
    ) -> NodeSnapshot:
        instance_id = instance.instance_id
        definition = instance.definition
        last_value = working[instance_id].value

        # Rule code is arbitrary; any exception it raises belongs to this node only
        try:
            # A gate that is closed wins over a failing dependency
            if definition.is_applicable is not None and not definition.is_applicable(context):
                recorder.skip(instance_id, SkipReason.NOT_APPLICABLE)
                return NodeSnapshot(instance_id, None, NodeStatus.SKIPPED)

            for dependency_id in instance.dependencies:
                dependency = working.get(dependency_id)
                if dependency is not None and dependency.status == NodeStatus.ERROR:
                    failure = DependencyErrorPropagated(instance_id, dependency_id)
                    return NodeSnapshot(instance_id, last_value, NodeStatus.ERROR, error_message=str(failure))

            assert definition.compute is not None  # guaranteed by NodeDefinition for computed nodes
            value = definition.compute(context)
        except Exception as exc:
            log.warning("node_compute_failed", node_id=instance_id, error_type=type(exc).__name__, error=str(exc))
            return NodeSnapshot(instance_id, last_value, NodeStatus.ERROR, error_message=str(exc))

        if value is None:
            recorder.skip(instance_id, SkipReason.NO_VALUE)
            return NodeSnapshot(instance_id, None, NodeStatus.SKIPPED)

        violations = definition.constraints.violations(value)
        if violations:
            failure = ConstraintViolationError(instance_id, [message for _, message in violations])
            log.warning("node_compute_failed", node_id=instance_id, error_type=type(failure).__name__, error=str(failure))
            return NodeSnapshot(instance_id, last_value, NodeStatus.ERROR, error_message=str(failure))

        return NodeSnapshot(instance_id, value, NodeStatus.CLEAN)

    def _complete(
        self,
        working: dict[InstanceID, NodeSnapshot],
        recorder: TraceRecorder,
        log: structlog.stdlib.BoundLogger,
        event: str,
        **fields: object,
    ) -> EngineResult:
        new_state = SessionState(working)
        frame = recorder.finish(new_state)
        summary = frame.summary
        log.debug(
            event,
            visited=len(frame.visit_order),
            changed=len(frame.changes),
            errors=summary.error_nodes,
            duration_ms=round(frame.duration_ms, 3),
            **fields,
        )
        return EngineResult(success=summary.error_nodes == 0, current_state=new_state, frame=frame, summary=summary)
