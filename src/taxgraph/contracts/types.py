"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of definition ids where instance ids are
expected (and the reverse).
"""

from decimal import Decimal
from typing import NewType

NodeID = NewType("NodeID", str)
"""Identifier of a node definition (e.g., 'f8889.primary.line13_hsaDeduction')"""

InstanceID = NewType("InstanceID", str)
"""Identifier of a materialized node instance.

Equal to the NodeID for ordinary nodes; the '.spouse.' mirror of a
repeatable definition has its own InstanceID.
"""

type NodeValue = int | float | Decimal | bool | str | None
"""Value carried by a node. None means absent (not set, skipped, or unknown)."""
