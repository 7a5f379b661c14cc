"""Types and exceptions for dependency-graph operations.

Leaf module within core.dag: no imports from graph.py or catalog.py
(prevents import cycles).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from taxgraph.contracts.nodes import MaterializationScope, NodeDefinition
from taxgraph.contracts.types import InstanceID, NodeID


class GraphValidationError(ValueError):
    """Raised when the registered node set does not form a valid graph.

    Structural errors are fatal: registration aborts and the catalog keeps
    its previous contents.
    """


class DuplicateNodeError(GraphValidationError):
    """Raised when an identifier is registered twice."""


class UnknownDependencyError(GraphValidationError):
    """Raised when a computed node declares a dependency nobody registered."""

    def __init__(self, node_id: str, dependency_id: str, suggestions: list[str]) -> None:
        self.node_id = node_id
        self.dependency_id = dependency_id
        self.suggestions = suggestions
        hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
        super().__init__(f"Node '{node_id}' depends on unknown node '{dependency_id}'.{hint}")


class CycleError(GraphValidationError):
    """Raised when dependency declarations form a cycle.

    cycle lists the instances along the cycle in data-flow order, with the
    first instance repeated at the end (['X', 'Y', 'X']).
    """

    def __init__(self, cycle: list[InstanceID]) -> None:
        self.cycle = cycle
        super().__init__(
            f"Circular dependency detected in node graph: {' -> '.join(cycle)}. "
            "These nodes form a cycle; check their dependency declarations."
        )


@dataclass(frozen=True, slots=True)
class NodeInstance:
    """One addressable node in the full declared superset.

    Ordinary definitions yield one instance whose id equals the definition
    id. A repeatable definition also yields a second-filer mirror with its
    own id, its dependencies redirected to mirrors where they exist, and a
    scope that requires a second filer.

    read_aliases maps every identifier a rule may pass to ctx.get() (the
    ids as declared in the definition) to the instance actually read.
    """

    instance_id: InstanceID
    definition: NodeDefinition
    dependencies: tuple[InstanceID, ...]
    read_aliases: Mapping[str, InstanceID]
    scope: MaterializationScope
    sequence: tuple[int, int]
    mirror_of: NodeID | None = None

    @classmethod
    def of(
        cls,
        instance_id: str,
        definition: NodeDefinition,
        *,
        dependencies: tuple[InstanceID, ...],
        read_aliases: dict[str, InstanceID],
        scope: MaterializationScope,
        sequence: tuple[int, int],
        mirror_of: NodeID | None = None,
    ) -> NodeInstance:
        return cls(
            instance_id=InstanceID(instance_id),
            definition=definition,
            dependencies=dependencies,
            read_aliases=MappingProxyType(read_aliases),
            scope=scope,
            sequence=sequence,
            mirror_of=mirror_of,
        )

    @property
    def is_mirror(self) -> bool:
        return self.mirror_of is not None


def _suggest_similar(name: str, candidates: list[str]) -> list[str]:
    """Suggest similar identifiers for unknown-dependency errors."""
    import difflib

    return difflib.get_close_matches(name, candidates, n=3, cutoff=0.6)
