"""Triggers of a compute pass: input events and override clearing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from taxgraph.contracts.enums import EventSource
from taxgraph.contracts.types import InstanceID, NodeValue


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class InputEvent:
    """A single externally supplied value for one node instance.

    Ordinary events (any source except OVERRIDE) may only target input
    nodes. OVERRIDE events may target any node and must carry a note
    documenting why the preparer overrode the value.
    """

    instance_id: InstanceID
    value: NodeValue
    source: EventSource = EventSource.PREPARER
    timestamp: datetime = field(default_factory=_utc_now)
    override_note: str | None = None

    @property
    def is_override(self) -> bool:
        return self.source == EventSource.OVERRIDE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "instance_id": self.instance_id,
            "value": self.value,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.override_note is not None:
            data["override_note"] = self.override_note
        return data


@dataclass(frozen=True, slots=True)
class ClearOverride:
    """Request to end a standing override on one node instance."""

    instance_id: InstanceID
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {"instance_id": self.instance_id, "clear_override": True, "timestamp": self.timestamp.isoformat()}


type Trigger = InputEvent | ClearOverride
