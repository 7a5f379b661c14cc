"""Dependency graph operations: instance expansion, validation, ordering."""

from taxgraph.core.dag.catalog import NodeCatalog, mirror_id
from taxgraph.core.dag.graph import DependencyGraph
from taxgraph.core.dag.models import (
    CycleError,
    DuplicateNodeError,
    GraphValidationError,
    NodeInstance,
    UnknownDependencyError,
)

__all__ = [
    "CycleError",
    "DependencyGraph",
    "DuplicateNodeError",
    "GraphValidationError",
    "NodeCatalog",
    "NodeInstance",
    "UnknownDependencyError",
    "mirror_id",
]
