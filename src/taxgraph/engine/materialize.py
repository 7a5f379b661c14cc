"""Per-session materialization of the declared node superset.

The DependencyGraph is built once over every declared instance. A session
only sees the instances whose scope applies to its parameters; this module
filters the global order and the dependents index down to that subset
without re-running any graph algorithm.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from taxgraph.contracts.errors import SessionMismatchError
from taxgraph.contracts.session import SessionParameters
from taxgraph.contracts.types import InstanceID
from taxgraph.core.dag.graph import DependencyGraph
from taxgraph.core.dag.models import NodeInstance


@dataclass(frozen=True, slots=True)
class SessionPlan:
    """The materialized slice of the graph for one set of session parameters.

    order is the global topological order restricted to materialized
    instances; filtering a valid order preserves every edge constraint.
    """

    graph: DependencyGraph
    instance_ids: frozenset[InstanceID]
    order: tuple[InstanceID, ...]
    dependents_index: Mapping[InstanceID, tuple[InstanceID, ...]]

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self.instance_ids

    def instance(self, instance_id: str) -> NodeInstance:
        return self.graph.instance(instance_id)

    def dependents(self, instance_id: str) -> tuple[InstanceID, ...]:
        """Materialized direct dependents, in evaluation order."""
        return self.dependents_index.get(InstanceID(instance_id), ())

    def check_state(self, instance_ids: frozenset[InstanceID] | set[InstanceID]) -> None:
        """Verify a state holds exactly the materialized instances.

        Raises:
            SessionMismatchError: If the state was produced for other parameters or another catalog
        """
        if instance_ids == self.instance_ids:
            return
        missing = sorted(self.instance_ids - instance_ids)
        unexpected = sorted(instance_ids - self.instance_ids)
        raise SessionMismatchError(
            "State does not match this session's materialization "
            f"(missing {len(missing)}: {missing[:5]}, unexpected {len(unexpected)}: {unexpected[:5]}). "
            "Reinitialize the session after changing the catalog or the session parameters."
        )


def build_plan(graph: DependencyGraph, params: SessionParameters) -> SessionPlan:
    """Evaluate every instance's scope once and filter the graph to the result."""
    materialized = [instance_id for instance_id in graph.topological_order if graph.instance(instance_id).scope.applies_to(params)]
    selected = frozenset(materialized)
    dependents = {
        instance_id: tuple(dependent for dependent in graph.dependents(instance_id) if dependent in selected) for instance_id in materialized
    }
    return SessionPlan(
        graph=graph,
        instance_ids=selected,
        order=tuple(materialized),
        dependents_index=MappingProxyType(dependents),
    )


class PlanCache:
    """Caches SessionPlans per graph and materialization key.

    Plans are keyed on the graph object they were built from, so a plan
    can never outlive a registration: a new graph simply misses the cache.
    """

    def __init__(self, max_entries: int = 32) -> None:
        self._lock = threading.Lock()
        self._plans: dict[tuple[int, tuple[str, str, bool]], SessionPlan] = {}
        self._max_entries = max_entries

    def get(self, graph: DependencyGraph, params: SessionParameters) -> SessionPlan:
        key = (id(graph), params.materialization_key)
        with self._lock:
            plan = self._plans.get(key)
            # id() values are reused after garbage collection; confirm identity
            if plan is not None and plan.graph is graph:
                return plan

        plan = build_plan(graph, params)
        with self._lock:
            if len(self._plans) >= self._max_entries:
                self._plans.clear()
            self._plans[key] = plan
        return plan

    def clear(self) -> None:
        with self._lock:
            self._plans.clear()
