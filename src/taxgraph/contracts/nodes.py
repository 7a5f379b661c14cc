"""Node definition contracts.

A NodeDefinition is immutable once constructed. The catalog never mutates
a definition; retiring one means unregistering it and registering a
replacement under a new identifier.

Rules for this module:
    - No form names, dollar amounts, or year-specific constants
    - Definitions describe shape; the engine decides when rules run
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from taxgraph.contracts.enums import NodeKind, NodeOwner, ValidationCode, ValueType
from taxgraph.contracts.errors import DefinitionError
from taxgraph.contracts.types import NodeID, NodeValue

if TYPE_CHECKING:
    from taxgraph.contracts.session import SessionParameters

PRIMARY_SEGMENT = f".{NodeOwner.PRIMARY}."
SPOUSE_SEGMENT = f".{NodeOwner.SPOUSE}."

_NUMERIC_TYPES = frozenset({ValueType.CURRENCY, ValueType.PERCENTAGE, ValueType.INTEGER})


class RuleContext(Protocol):
    """Read-only capability handed to compute and applicability rules.

    Rules read session parameters and the current value of their declared
    dependencies through this interface and nothing else, so any rule can
    be tested in isolation with a stub.
    """

    @property
    def tax_year(self) -> str: ...

    @property
    def filing_status(self) -> str: ...

    @property
    def has_second_filer(self) -> bool: ...

    def get(self, node_id: str) -> NodeValue:
        """Return the current value of a declared dependency (None if absent)."""
        ...


type ComputeRule = Callable[[RuleContext], NodeValue]
type ApplicabilityRule = Callable[[RuleContext], bool]


@dataclass(frozen=True, slots=True)
class ValueConstraints:
    """Declared value shape plus sign and range limits.

    Used by the event validator for incoming values and by the compute
    engine for results of compute rules.
    """

    value_type: ValueType = ValueType.CURRENCY
    allow_negative: bool = False
    minimum: int | float | Decimal | None = None
    maximum: int | float | Decimal | None = None
    allowed_values: tuple[str, ...] | None = None

    def violations(self, value: NodeValue) -> list[tuple[ValidationCode, str]]:
        """Return every (code, message) pair the value violates.

        None never violates: it is the absent value.
        """
        if value is None:
            return []

        if self.value_type in _NUMERIC_TYPES:
            return self._numeric_violations(value)
        if self.value_type == ValueType.BOOLEAN:
            if not isinstance(value, bool):
                return [(ValidationCode.TYPE_MISMATCH, f"Expected a boolean, got {type(value).__name__}.")]
            return []

        # Text-like types from here on
        if not isinstance(value, str):
            return [(ValidationCode.TYPE_MISMATCH, f"Expected text for {self.value_type} value, got {type(value).__name__}.")]
        if self.value_type == ValueType.DATE and not _is_iso_date(value):
            return [(ValidationCode.INVALID_DATE, f"'{value}' is not an ISO 8601 date (YYYY-MM-DD).")]
        if self.allowed_values is not None and value not in self.allowed_values:
            return [
                (
                    ValidationCode.INVALID_ENUM_VALUE,
                    f"'{value}' is not one of the allowed values: [{', '.join(self.allowed_values)}].",
                )
            ]
        return []

    def _numeric_violations(self, value: NodeValue) -> list[tuple[ValidationCode, str]]:
        # bool is an int subclass; a checkbox answer is never an amount
        if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
            return [(ValidationCode.TYPE_MISMATCH, f"Expected a number for {self.value_type} value, got {type(value).__name__}.")]
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return [(ValidationCode.TYPE_MISMATCH, f"Non-finite number {value} is not a valid value.")]
        if isinstance(value, Decimal) and not value.is_finite():
            return [(ValidationCode.TYPE_MISMATCH, f"Non-finite number {value} is not a valid value.")]
        if self.value_type == ValueType.INTEGER and value != int(value):
            return [(ValidationCode.TYPE_MISMATCH, f"Expected a whole number, got {value}.")]

        found: list[tuple[ValidationCode, str]] = []
        if not self.allow_negative and value < 0:
            found.append((ValidationCode.NEGATIVE_NOT_ALLOWED, f"Negative values are not allowed. Received: {value}."))
        if self.minimum is not None and value < self.minimum:
            found.append((ValidationCode.BELOW_MINIMUM, f"Value {value} is below the minimum of {self.minimum}."))
        if self.maximum is not None and value > self.maximum:
            found.append((ValidationCode.ABOVE_MAXIMUM, f"Value {value} is above the maximum of {self.maximum}."))
        return found


def _is_iso_date(text: str) -> bool:
    if len(text) != 10:
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class MaterializationScope:
    """Which session contexts cause a node to exist at all.

    Empty collections mean "no restriction". A node outside the scope of a
    session is absent from that session's state, never present as zero.
    """

    tax_years: frozenset[str] = frozenset()
    filing_statuses: frozenset[str] = frozenset()
    requires_second_filer: bool = False

    def applies_to(self, params: SessionParameters) -> bool:
        if self.tax_years and params.tax_year not in self.tax_years:
            return False
        if self.filing_statuses and params.filing_status not in self.filing_statuses:
            return False
        return not (self.requires_second_filer and not params.has_second_filer)


ALWAYS = MaterializationScope()


@dataclass(frozen=True, slots=True)
class NodeDefinition:
    """Static definition of one node.

    Frozen after construction. Input nodes carry a default value and no
    rules; computed nodes carry a non-empty dependency list and a compute
    rule. Repeatable nodes must be owned by the primary filer and carry the
    '.primary.' segment so the catalog can derive the second-filer mirror.
    """

    node_id: NodeID
    kind: NodeKind
    label: str = ""
    description: str = ""
    dependencies: tuple[NodeID, ...] = ()
    compute: ComputeRule | None = field(default=None, compare=False)
    is_applicable: ApplicabilityRule | None = field(default=None, compare=False)
    constraints: ValueConstraints = field(default_factory=ValueConstraints)
    default_value: NodeValue = None
    owner: NodeOwner = NodeOwner.JOINT
    repeatable: bool = False
    scope: MaterializationScope = ALWAYS

    def __post_init__(self) -> None:
        if not self.node_id:
            raise DefinitionError("node_id must be a non-empty string")
        if self.kind == NodeKind.COMPUTED:
            if not self.dependencies:
                raise DefinitionError(f"Computed node '{self.node_id}' must declare at least one dependency")
            if self.compute is None:
                raise DefinitionError(f"Computed node '{self.node_id}' has no compute rule")
            if len(set(self.dependencies)) != len(self.dependencies):
                raise DefinitionError(f"Computed node '{self.node_id}' declares a dependency more than once")
        else:
            if self.dependencies or self.compute is not None or self.is_applicable is not None:
                raise DefinitionError(f"Input node '{self.node_id}' cannot declare dependencies or rules")
        if self.repeatable:
            if self.owner != NodeOwner.PRIMARY:
                raise DefinitionError(f"Repeatable node '{self.node_id}' must be owned by '{NodeOwner.PRIMARY}'")
            if PRIMARY_SEGMENT not in self.node_id:
                raise DefinitionError(f"Repeatable node '{self.node_id}' must contain the '{PRIMARY_SEGMENT}' segment")

    @property
    def is_input(self) -> bool:
        return self.kind == NodeKind.INPUT

    @property
    def is_computed(self) -> bool:
        return self.kind == NodeKind.COMPUTED


def input_node(
    node_id: str,
    *,
    default: NodeValue = 0,
    value_type: ValueType = ValueType.CURRENCY,
    allow_negative: bool = False,
    minimum: int | float | Decimal | None = None,
    maximum: int | float | Decimal | None = None,
    allowed_values: tuple[str, ...] | None = None,
    label: str = "",
    description: str = "",
    owner: NodeOwner = NodeOwner.JOINT,
    repeatable: bool = False,
    scope: MaterializationScope = ALWAYS,
) -> NodeDefinition:
    """Build an input node definition."""
    return NodeDefinition(
        node_id=NodeID(node_id),
        kind=NodeKind.INPUT,
        label=label or node_id,
        description=description,
        constraints=ValueConstraints(
            value_type=value_type,
            allow_negative=allow_negative,
            minimum=minimum,
            maximum=maximum,
            allowed_values=allowed_values,
        ),
        default_value=default,
        owner=owner,
        repeatable=repeatable,
        scope=scope,
    )


def computed_node(
    node_id: str,
    dependencies: list[str] | tuple[str, ...],
    compute: ComputeRule,
    *,
    is_applicable: ApplicabilityRule | None = None,
    value_type: ValueType = ValueType.CURRENCY,
    allow_negative: bool = False,
    minimum: int | float | Decimal | None = None,
    maximum: int | float | Decimal | None = None,
    label: str = "",
    description: str = "",
    owner: NodeOwner = NodeOwner.JOINT,
    repeatable: bool = False,
    scope: MaterializationScope = ALWAYS,
) -> NodeDefinition:
    """Build a computed node definition."""
    return NodeDefinition(
        node_id=NodeID(node_id),
        kind=NodeKind.COMPUTED,
        label=label or node_id,
        description=description,
        dependencies=tuple(NodeID(dep) for dep in dependencies),
        compute=compute,
        is_applicable=is_applicable,
        constraints=ValueConstraints(
            value_type=value_type,
            allow_negative=allow_negative,
            minimum=minimum,
            maximum=maximum,
        ),
        owner=owner,
        repeatable=repeatable,
        scope=scope,
    )
