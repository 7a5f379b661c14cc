"""
Canonical JSON serialization for deterministic hashing.

Two-phase approach:
1. Normalize: Convert Decimal, datetime, and enum values to JSON-safe primitives (our code)
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
A state hash that silently absorbed a non-finite amount would make two
different returns hash alike.
"""

from __future__ import annotations

import hashlib
import math
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from taxgraph.contracts.session import SessionState
    from taxgraph.core.dag.graph import DependencyGraph

# Version string recorded next to hashes so verifiers know the algorithm
CANONICAL_VERSION = "sha256-rfc8785-v1"


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to a JSON-safe primitive.

    Raises:
        ValueError: If value is NaN or Infinity
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}. Use None for missing values, not NaN.")
        return obj

    # StrEnum is a str; render its value, not its repr
    if isinstance(obj, Enum):
        return obj.value

    if obj is None or isinstance(obj, str | int | bool):
        return obj

    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return obj.astimezone(UTC).isoformat()

    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot canonicalize non-finite Decimal: {obj}. Use None for missing values, not NaN/Infinity.")
        return str(obj)

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any, version: str = CANONICAL_VERSION) -> str:
    """Compute stable hash of object.

    Args:
        obj: Data structure to hash
        version: Hash algorithm version (recorded by callers for verification)

    Returns:
        SHA-256 hex digest of canonical JSON
    """
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def state_hash(state: SessionState) -> str:
    """Hash of every snapshot in a session state.

    Independent of iteration order: canonical JSON sorts object keys.
    """
    return stable_hash(state.to_dict())


def compute_topology_hash(graph: DependencyGraph) -> str:
    """Hash of the complete dependency topology.

    Two processes holding graphs with the same hash evaluate the same
    instances along the same edges in the same order. Rules themselves are
    code and are not part of the hash.
    """
    topology_data = {
        "nodes": [
            {
                "instance_id": instance.instance_id,
                "kind": instance.definition.kind,
                "dependencies": list(instance.dependencies),
                "second_filer_only": instance.scope.requires_second_filer,
            }
            for instance in (graph.instance(instance_id) for instance_id in graph.topological_order)
        ],
        "order": list(graph.topological_order),
    }
    return stable_hash(topology_data)
