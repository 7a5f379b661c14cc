"""Event validation: accept or reject an event without touching state.

Usable standalone (a UI can show inline errors before committing) and
re-run by the engine at the start of every process() call. Expected
failures are returned as a ValidationResult, never raised.
"""

from __future__ import annotations

from collections.abc import Mapping

from taxgraph.contracts.enums import NodeStatus, ValidationCode
from taxgraph.contracts.events import ClearOverride, InputEvent
from taxgraph.contracts.session import NodeSnapshot
from taxgraph.contracts.types import InstanceID
from taxgraph.contracts.validation import ValidationIssue, ValidationResult
from taxgraph.core.dag.graph import DependencyGraph


class EventValidator:
    """Checks events against the catalog graph and a session state.

    Checks, in order:
    1. The target exists in the session's materialization (returns at once if not)
    2. Ordinary events do not target computed nodes
    3. Override events carry a non-empty note
    4. The value satisfies the node's declared constraints
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph

    def validate(self, event: InputEvent, state: Mapping[InstanceID, NodeSnapshot]) -> ValidationResult:
        instance_id = event.instance_id
        if instance_id not in state or not self._graph.has_instance(instance_id):
            return ValidationResult.from_issues([_not_found(instance_id)])

        definition = self._graph.instance(instance_id).definition
        issues: list[ValidationIssue] = []

        if definition.is_computed and not event.is_override:
            issues.append(
                ValidationIssue(
                    instance_id=instance_id,
                    code=ValidationCode.NODE_IS_COMPUTED,
                    message=f"Node '{instance_id}' is computed. To override it, use source 'override' and provide an override note.",
                )
            )

        if event.is_override and not (event.override_note or "").strip():
            issues.append(
                ValidationIssue(
                    instance_id=instance_id,
                    code=ValidationCode.OVERRIDE_REQUIRES_NOTE,
                    message="Overriding a node requires an override note explaining why.",
                )
            )

        for code, message in definition.constraints.violations(event.value):
            issues.append(ValidationIssue(instance_id=instance_id, code=code, message=f"Node '{instance_id}': {message}"))

        return ValidationResult.from_issues(issues)

    def validate_clear(self, request: ClearOverride, state: Mapping[InstanceID, NodeSnapshot]) -> ValidationResult:
        instance_id = request.instance_id
        if instance_id not in state or not self._graph.has_instance(instance_id):
            return ValidationResult.from_issues([_not_found(instance_id)])
        if state[instance_id].status != NodeStatus.OVERRIDE:
            return ValidationResult.from_issues(
                [
                    ValidationIssue(
                        instance_id=instance_id,
                        code=ValidationCode.OVERRIDE_NOT_SET,
                        message=f"Node '{instance_id}' is not overridden (status: {state[instance_id].status}).",
                    )
                ]
            )
        return ValidationResult.ok()


def _not_found(instance_id: InstanceID) -> ValidationIssue:
    return ValidationIssue(
        instance_id=instance_id,
        code=ValidationCode.NODE_NOT_FOUND,
        message=f"Node '{instance_id}' does not exist in this session.",
    )
