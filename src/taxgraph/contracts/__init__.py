"""Shared contracts for cross-boundary data types.

All dataclasses, enums, and exceptions that cross subsystem boundaries are
defined here. This package is a LEAF MODULE with no outbound dependencies
to core/engine.

Import patterns:
    from taxgraph.contracts import NodeStatus, InputEvent, SessionState
    from taxgraph.contracts import computed_node, input_node
"""

from taxgraph.contracts.enums import (
    EventSource,
    NodeKind,
    NodeOwner,
    NodeStatus,
    SkipReason,
    ValidationCode,
    ValueType,
)
from taxgraph.contracts.errors import (
    ConstraintViolationError,
    DefinitionError,
    DependencyErrorPropagated,
    SessionMismatchError,
    UndeclaredDependencyError,
    UnknownNodeError,
)
from taxgraph.contracts.events import ClearOverride, InputEvent, Trigger
from taxgraph.contracts.nodes import (
    ALWAYS,
    PRIMARY_SEGMENT,
    SPOUSE_SEGMENT,
    ApplicabilityRule,
    ComputeRule,
    MaterializationScope,
    NodeDefinition,
    RuleContext,
    ValueConstraints,
    computed_node,
    input_node,
)
from taxgraph.contracts.session import NodeSnapshot, SessionParameters, SessionState, StatusSummary
from taxgraph.contracts.trace import EngineResult, NodeChange, SkipRecord, TraceFrame
from taxgraph.contracts.types import InstanceID, NodeID, NodeValue
from taxgraph.contracts.validation import ValidationIssue, ValidationResult

__all__ = [
    "ALWAYS",
    "PRIMARY_SEGMENT",
    "SPOUSE_SEGMENT",
    "ApplicabilityRule",
    "ClearOverride",
    "ComputeRule",
    "ConstraintViolationError",
    "DefinitionError",
    "DependencyErrorPropagated",
    "EngineResult",
    "EventSource",
    "InputEvent",
    "InstanceID",
    "MaterializationScope",
    "NodeChange",
    "NodeDefinition",
    "NodeID",
    "NodeKind",
    "NodeOwner",
    "NodeSnapshot",
    "NodeStatus",
    "NodeValue",
    "RuleContext",
    "SessionMismatchError",
    "SessionParameters",
    "SessionState",
    "SkipReason",
    "SkipRecord",
    "StatusSummary",
    "TraceFrame",
    "Trigger",
    "UndeclaredDependencyError",
    "UnknownNodeError",
    "ValidationCode",
    "ValidationIssue",
    "ValidationResult",
    "ValueConstraints",
    "ValueType",
    "computed_node",
    "input_node",
]
