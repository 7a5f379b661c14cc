"""Session contracts: parameters, per-node snapshots, and the state mapping.

SessionState is a value, not a container. Every compute pass produces a
new one; prior states stay valid and unchanged, so callers may keep them
for undo, audit, or speculative "what-if" branches.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from taxgraph.contracts.enums import NodeStatus
from taxgraph.contracts.types import InstanceID, NodeValue


@dataclass(frozen=True, slots=True)
class SessionParameters:
    """Session context supplied by the caller.

    Passed unchanged through every compute call. A different context means
    a different session; it never changes mid-session.
    """

    tax_year: str
    filing_status: str
    has_second_filer: bool = False
    session_key: str = ""

    def __post_init__(self) -> None:
        if not self.tax_year:
            raise ValueError("tax_year must be a non-empty string")
        if not self.filing_status:
            raise ValueError("filing_status must be a non-empty string")

    @property
    def materialization_key(self) -> tuple[str, str, bool]:
        """The subset of parameters that decides which nodes exist."""
        return (self.tax_year, self.filing_status, self.has_second_filer)


@dataclass(frozen=True, slots=True)
class NodeSnapshot:
    """Value and status of one node instance at one point in time.

    override_note is set only when status is OVERRIDE; error_message only
    when status is ERROR.
    """

    instance_id: InstanceID
    value: NodeValue
    status: NodeStatus
    override_note: str | None = None
    error_message: str | None = None

    def differs_from(self, other: NodeSnapshot | None) -> bool:
        """True when value or status changed (the trace diff criterion)."""
        if other is None:
            return True
        return self.status != other.status or not _same_value(self.value, other.value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"value": self.value, "status": self.status.value}
        if self.override_note is not None:
            data["override_note"] = self.override_note
        if self.error_message is not None:
            data["error_message"] = self.error_message
        return data

    @classmethod
    def from_dict(cls, instance_id: str, data: Mapping[str, Any]) -> NodeSnapshot:
        return cls(
            instance_id=InstanceID(instance_id),
            value=data["value"],
            status=NodeStatus(data["status"]),
            override_note=data.get("override_note"),
            error_message=data.get("error_message"),
        )


def _same_value(a: NodeValue, b: NodeValue) -> bool:
    # True == 1 in Python; a boolean answer flipping to an amount is a change
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


@dataclass(frozen=True, slots=True)
class StatusSummary:
    """Aggregate count of node instances by status."""

    total_nodes: int = 0
    clean_nodes: int = 0
    dirty_nodes: int = 0
    skipped_nodes: int = 0
    error_nodes: int = 0
    override_nodes: int = 0

    @classmethod
    def of(cls, snapshots: Iterable[NodeSnapshot]) -> StatusSummary:
        counts = dict.fromkeys(NodeStatus, 0)
        total = 0
        for snapshot in snapshots:
            counts[snapshot.status] += 1
            total += 1
        return cls(
            total_nodes=total,
            clean_nodes=counts[NodeStatus.CLEAN],
            dirty_nodes=counts[NodeStatus.DIRTY],
            skipped_nodes=counts[NodeStatus.SKIPPED],
            error_nodes=counts[NodeStatus.ERROR],
            override_nodes=counts[NodeStatus.OVERRIDE],
        )


class SessionState(Mapping[InstanceID, NodeSnapshot]):
    """Immutable mapping from materialized instance id to its snapshot.

    Iteration follows evaluation order. The mapping never changes after
    construction; the compute engine builds a new SessionState per pass.
    """

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Mapping[InstanceID, NodeSnapshot] | None = None) -> None:
        self._nodes: Mapping[InstanceID, NodeSnapshot] = MappingProxyType(dict(nodes or {}))

    def __getitem__(self, instance_id: str) -> NodeSnapshot:
        return self._nodes[InstanceID(instance_id)]

    def __iter__(self) -> Iterator[InstanceID]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"SessionState({len(self._nodes)} nodes)"

    def value(self, instance_id: str) -> NodeValue:
        """Shortcut for state[instance_id].value."""
        return self[instance_id].value

    def status(self, instance_id: str) -> NodeStatus:
        """Shortcut for state[instance_id].status."""
        return self[instance_id].status

    def with_status(self, status: NodeStatus) -> list[InstanceID]:
        """Instance ids currently in the given status, in evaluation order."""
        return [instance_id for instance_id, snapshot in self._nodes.items() if snapshot.status == status]

    def summarize(self) -> StatusSummary:
        return StatusSummary.of(self._nodes.values())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Plain-data rendering for persistence collaborators.

        Values are left as-is; Decimal values need an encoder that knows
        them (see taxgraph.core.canonical).
        """
        return {instance_id: snapshot.to_dict() for instance_id, snapshot in self._nodes.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> SessionState:
        return cls({InstanceID(instance_id): NodeSnapshot.from_dict(instance_id, item) for instance_id, item in data.items()})
