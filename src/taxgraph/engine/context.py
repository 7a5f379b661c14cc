"""Rule context: the narrow capability compute rules run against."""

from __future__ import annotations

from collections.abc import Mapping

from taxgraph.contracts.errors import UndeclaredDependencyError
from taxgraph.contracts.session import NodeSnapshot, SessionParameters
from taxgraph.contracts.types import InstanceID, NodeValue
from taxgraph.core.dag.models import NodeInstance


class EngineRuleContext:
    """RuleContext bound to one node instance during one compute pass.

    get() resolves the identifiers the definition declared (so a
    second-filer mirror transparently reads its own '.spouse.' inputs) and
    reads them from the pass's working values, which already hold every
    dependency recomputed earlier in the same pass.
    """

    __slots__ = ("_instance", "_params", "_snapshots", "_strict")

    def __init__(
        self,
        instance: NodeInstance,
        params: SessionParameters,
        snapshots: Mapping[InstanceID, NodeSnapshot],
        *,
        strict: bool = True,
    ) -> None:
        self._instance = instance
        self._params = params
        self._snapshots = snapshots
        self._strict = strict

    @property
    def tax_year(self) -> str:
        return self._params.tax_year

    @property
    def filing_status(self) -> str:
        return self._params.filing_status

    @property
    def has_second_filer(self) -> bool:
        return self._params.has_second_filer

    @property
    def session_key(self) -> str:
        return self._params.session_key

    def get(self, node_id: str) -> NodeValue:
        resolved = self._instance.read_aliases.get(node_id)
        if resolved is None:
            if self._strict:
                raise UndeclaredDependencyError(self._instance.instance_id, node_id)
            resolved = InstanceID(node_id)
        snapshot = self._snapshots.get(resolved)
        # Declared but not materialized for this session
        if snapshot is None:
            return None
        return snapshot.value

    def dependency_values(self) -> dict[InstanceID, NodeValue]:
        """Current value of every resolved dependency, keyed by instance id."""
        values: dict[InstanceID, NodeValue] = {}
        for dependency_id in self._instance.dependencies:
            snapshot = self._snapshots.get(dependency_id)
            values[dependency_id] = snapshot.value if snapshot is not None else None
        return values
