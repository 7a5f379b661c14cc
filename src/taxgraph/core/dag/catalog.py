# src/taxgraph/core/dag/catalog.py
"""NodeCatalog: registration of node definitions into a compiled graph.

Each successful registration or retraction publishes a new immutable
DependencyGraph. Readers take the current graph once per call and keep
using it; they never observe a half-applied registration.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from taxgraph.contracts.nodes import PRIMARY_SEGMENT, SPOUSE_SEGMENT, MaterializationScope, NodeDefinition
from taxgraph.contracts.types import InstanceID, NodeID
from taxgraph.core.canonical import compute_topology_hash
from taxgraph.core.dag.graph import DependencyGraph
from taxgraph.core.dag.models import (
    DuplicateNodeError,
    GraphValidationError,
    NodeInstance,
    UnknownDependencyError,
    _suggest_similar,
)
from taxgraph.core.logging import get_logger

logger = get_logger(__name__)


def mirror_id(node_id: str) -> InstanceID:
    """Second-filer instance id of a repeatable definition."""
    return InstanceID(node_id.replace(PRIMARY_SEGMENT, SPOUSE_SEGMENT, 1))


class NodeCatalog:
    """Registry of node definitions and the graph compiled from them.

    Later batches may add identifiers but never redefine one. Dependencies
    of a computed node must be registered earlier or in the same batch.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._definitions: Mapping[NodeID, NodeDefinition] = MappingProxyType({})
        self._sequence: Mapping[NodeID, int] = MappingProxyType({})
        self._next_sequence = 0
        self._graph = DependencyGraph.empty()
        self._version = 0

    @property
    def graph(self) -> DependencyGraph:
        """The currently published graph."""
        return self._graph

    @property
    def version(self) -> int:
        """Incremented on every successful registration or retraction."""
        return self._version

    def definitions(self) -> Mapping[NodeID, NodeDefinition]:
        return self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._definitions

    def register(self, definitions: Iterable[NodeDefinition]) -> DependencyGraph:
        """Add a batch of definitions and publish the recompiled graph.

        Atomic: on any error the catalog keeps its previous contents.

        Raises:
            DuplicateNodeError: Identifier already registered or repeated in the batch
            UnknownDependencyError: Dependency not registered before or in this batch
            CycleError: The combined graph contains a cycle
        """
        batch = list(definitions)
        with self._lock:
            try:
                merged = dict(self._definitions)
                sequence = dict(self._sequence)
                next_sequence = self._next_sequence
                for definition in batch:
                    if definition.node_id in merged:
                        raise DuplicateNodeError(f"Node '{definition.node_id}' is already registered; definitions cannot be redefined")
                    merged[definition.node_id] = definition
                    sequence[definition.node_id] = next_sequence
                    next_sequence += 1

                known = set(merged) | _mirror_ids(merged)
                for definition in batch:
                    for dependency_id in definition.dependencies:
                        if dependency_id not in known:
                            suggestions = _suggest_similar(dependency_id, sorted(known))
                            raise UnknownDependencyError(definition.node_id, dependency_id, suggestions)

                graph = DependencyGraph(_expand_instances(merged, sequence))
            except GraphValidationError as exc:
                logger.error("graph_registration_failed", error=str(exc), error_type=type(exc).__name__, batch_size=len(batch))
                raise

            self._definitions = MappingProxyType(merged)
            self._sequence = MappingProxyType(sequence)
            self._next_sequence = next_sequence
            self._graph = graph
            self._version += 1

        logger.info(
            "nodes_registered",
            batch_size=len(batch),
            definitions=len(merged),
            instances=graph.node_count,
            edges=graph.edge_count,
            catalog_version=self._version,
        )
        return graph

    def unregister(self, node_ids: Iterable[str]) -> DependencyGraph:
        """Retract definitions (and their second-filer mirrors).

        Raises:
            GraphValidationError: An id is unknown, or a remaining node still depends on a retracted one
        """
        retracting = {NodeID(node_id) for node_id in node_ids}
        with self._lock:
            try:
                unknown = sorted(retracting - set(self._definitions))
                if unknown:
                    raise GraphValidationError(f"Cannot unregister unknown node(s): {unknown}")

                merged = {node_id: definition for node_id, definition in self._definitions.items() if node_id not in retracting}
                gone = retracting | (_mirror_ids(self._definitions) - _mirror_ids(merged))
                for definition in merged.values():
                    still_needed = sorted(set(definition.dependencies) & gone)
                    if still_needed:
                        raise GraphValidationError(
                            f"Cannot unregister {still_needed}: node '{definition.node_id}' still depends on them. "
                            "Retract or replace its dependents in the same call."
                        )

                sequence = {node_id: seq for node_id, seq in self._sequence.items() if node_id in merged}
                graph = DependencyGraph(_expand_instances(merged, sequence))
            except GraphValidationError as exc:
                logger.error(
                    "graph_unregistration_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    node_ids=sorted(retracting),
                )
                raise

            self._definitions = MappingProxyType(merged)
            self._sequence = MappingProxyType(sequence)
            self._graph = graph
            self._version += 1

        logger.info("nodes_unregistered", retracted=len(retracting), definitions=len(merged), catalog_version=self._version)
        return graph

    def catalog_hash(self) -> str:
        """Topology hash of the currently published graph."""
        return compute_topology_hash(self._graph)


def _expand_instances(definitions: Mapping[NodeID, NodeDefinition], sequence: Mapping[NodeID, int]) -> list[NodeInstance]:
    """Expand definitions into the full declared superset of instances.

    Repeatable definitions gain a second-filer mirror whose '.primary.'
    dependencies are redirected to the corresponding mirrors, where those
    exist.
    """
    mirrored: dict[InstanceID, NodeID] = {}
    for definition in definitions.values():
        if definition.repeatable:
            spouse_id = mirror_id(definition.node_id)
            if spouse_id in definitions or spouse_id in mirrored:
                raise DuplicateNodeError(
                    f"Second-filer instance '{spouse_id}' of repeatable node '{definition.node_id}' collides with an existing node"
                )
            mirrored[spouse_id] = definition.node_id

    instances: list[NodeInstance] = []
    for node_id, definition in definitions.items():
        seq = sequence[node_id]
        aliases = {dep: InstanceID(dep) for dep in definition.dependencies}
        instances.append(
            NodeInstance.of(
                node_id,
                definition,
                dependencies=tuple(InstanceID(dep) for dep in definition.dependencies),
                read_aliases=aliases,
                scope=definition.scope,
                sequence=(seq, 0),
            )
        )

        if not definition.repeatable:
            continue

        spouse_aliases: dict[str, InstanceID] = {}
        for dep in definition.dependencies:
            candidate = mirror_id(dep) if PRIMARY_SEGMENT in dep else InstanceID(dep)
            spouse_aliases[dep] = candidate if candidate in mirrored else InstanceID(dep)
        base = definition.scope
        instances.append(
            NodeInstance.of(
                mirror_id(node_id),
                definition,
                dependencies=tuple(spouse_aliases[dep] for dep in definition.dependencies),
                read_aliases=spouse_aliases,
                scope=MaterializationScope(
                    tax_years=base.tax_years,
                    filing_statuses=base.filing_statuses,
                    requires_second_filer=True,
                ),
                sequence=(seq, 1),
                mirror_of=node_id,
            )
        )
    return instances


def _mirror_ids(definitions: Mapping[NodeID, NodeDefinition]) -> set[InstanceID]:
    return {mirror_id(node_id) for node_id, definition in definitions.items() if definition.repeatable}
