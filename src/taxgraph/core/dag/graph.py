# src/taxgraph/core/dag/graph.py
"""DependencyGraph: the compiled, immutable shape of the node catalog.

Built once per registration from the full declared superset of instances.
Sessions never rebuild it; they filter its order and dependents index to
their materialized subset (see taxgraph.engine.materialize).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

import networkx as nx
from networkx import DiGraph

from taxgraph.contracts.errors import UnknownNodeError
from taxgraph.contracts.types import InstanceID
from taxgraph.core.dag.models import (
    CycleError,
    NodeInstance,
    UnknownDependencyError,
    _suggest_similar,
)

# Three-colour marking for depth-first cycle detection
_UNVISITED = 0
_IN_PROGRESS = 1
_DONE = 2


class DependencyGraph:
    """Forward edge set, cycle check, and deterministic evaluation order.

    Wraps a NetworkX DiGraph whose edges point from a dependency to the
    node that reads it. Construction validates the graph; an instance of
    this class is always acyclic and closed over its dependencies.

    Ties between nodes with no ordering constraint are broken by
    registration order (a mirror sorts right after its primary), so the
    same registrations always yield the same visit order.
    """

    def __init__(self, instances: Iterable[NodeInstance]) -> None:
        self._instances: dict[InstanceID, NodeInstance] = {}
        for instance in sorted(instances, key=lambda item: item.sequence):
            self._instances[instance.instance_id] = instance

        self._graph: DiGraph[InstanceID] = nx.DiGraph()
        self._graph.add_nodes_from(self._instances)
        self._check_dependencies_known()
        for instance in self._instances.values():
            for dependency_id in instance.dependencies:
                self._graph.add_edge(dependency_id, instance.instance_id)

        self._check_acyclic()

        order = list(nx.lexicographical_topological_sort(self._graph, key=self._sort_key))
        self._order: tuple[InstanceID, ...] = tuple(order)
        self._position: Mapping[InstanceID, int] = MappingProxyType({instance_id: idx for idx, instance_id in enumerate(order)})
        self._dependents: Mapping[InstanceID, tuple[InstanceID, ...]] = MappingProxyType(
            {
                instance_id: tuple(sorted(self._graph.successors(instance_id), key=self._position.__getitem__))
                for instance_id in order
            }
        )

    @classmethod
    def empty(cls) -> DependencyGraph:
        return cls(())

    def _sort_key(self, instance_id: InstanceID) -> tuple[int, int]:
        return self._instances[instance_id].sequence

    # ===== CONSTRUCTION-TIME VALIDATION =====

    def _check_dependencies_known(self) -> None:
        for instance in self._instances.values():
            for dependency_id in instance.dependencies:
                if dependency_id not in self._instances:
                    suggestions = _suggest_similar(dependency_id, sorted(self._instances))
                    raise UnknownDependencyError(instance.instance_id, dependency_id, suggestions)

    def _check_acyclic(self) -> None:
        """Depth-first search with unvisited/in-progress/done marking.

        An edge reaching a node that is still in progress closes a cycle.
        Iterative so that long dependency chains cannot exhaust the
        interpreter's recursion limit.
        """
        colour = dict.fromkeys(self._instances, _UNVISITED)

        for root in self._instances:
            if colour[root] != _UNVISITED:
                continue
            colour[root] = _IN_PROGRESS
            path: list[InstanceID] = [root]
            stack = [iter(self._graph.successors(root))]

            while stack:
                for child in stack[-1]:
                    if colour[child] == _IN_PROGRESS:
                        start = path.index(child)
                        raise CycleError([*path[start:], child])
                    if colour[child] == _UNVISITED:
                        colour[child] = _IN_PROGRESS
                        path.append(child)
                        stack.append(iter(self._graph.successors(child)))
                        break
                else:
                    colour[path.pop()] = _DONE
                    stack.pop()

    # ===== QUERIES =====

    @property
    def node_count(self) -> int:
        """Number of instances in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of dependency edges in the graph."""
        return self._graph.number_of_edges()

    @property
    def topological_order(self) -> tuple[InstanceID, ...]:
        """Global evaluation order over the full declared superset."""
        return self._order

    def has_instance(self, instance_id: str) -> bool:
        return instance_id in self._instances

    def instance(self, instance_id: str) -> NodeInstance:
        """Get the NodeInstance for an id.

        Raises:
            UnknownNodeError: If the id is not part of the graph
        """
        try:
            return self._instances[InstanceID(instance_id)]
        except KeyError:
            raise UnknownNodeError(f"Node not found: {instance_id}") from None

    def instances(self) -> list[NodeInstance]:
        """All instances in evaluation order."""
        return [self._instances[instance_id] for instance_id in self._order]

    def position(self, instance_id: str) -> int:
        """Index of an instance in the global topological order."""
        return self._position[InstanceID(instance_id)]

    def dependents(self, instance_id: str) -> tuple[InstanceID, ...]:
        """Direct dependents of an instance, in evaluation order."""
        return self._dependents[InstanceID(instance_id)]

    def dependencies(self, instance_id: str) -> tuple[InstanceID, ...]:
        """Resolved dependencies of an instance, as declared."""
        return self.instance(instance_id).dependencies

    def transitive_dependents(self, instance_id: str) -> set[InstanceID]:
        """Every instance that reads this one, directly or indirectly."""
        return set(nx.descendants(self._graph, InstanceID(instance_id)))

    def get_nx_graph(self) -> DiGraph[InstanceID]:
        """Return a frozen copy of the underlying NetworkX graph.

        Mutation attempts on the copy raise nx.NetworkXError.
        """
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]
