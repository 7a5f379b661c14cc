"""Exception types that cross subsystem boundaries.

Three families, handled differently:

- Structural errors (unknown dependency, cycle, duplicate id) are raised at
  registration and are fatal. They live with the graph in
  taxgraph.core.dag.models.
- Input errors are expected per-event conditions. They are RETURNED as a
  ValidationResult, never raised.
- Compute errors are captured per node as status=error. The exceptions
  below that relate to computation are raised inside a single node's
  evaluation and caught at the per-node boundary.

Anything else here signals a caller bug and propagates.
"""


class DefinitionError(ValueError):
    """Raised when a single node definition is internally inconsistent.

    Examples: a computed node with no dependencies, an input node carrying
    a compute rule, a repeatable node without the '.primary.' segment.
    """


class UndeclaredDependencyError(LookupError):
    """Raised when a rule reads a node it did not declare as a dependency.

    Undeclared reads would make evaluation order depend on luck, so the
    node is marked as errored rather than allowed to read a possibly stale
    value.
    """

    def __init__(self, node_id: str, requested: str) -> None:
        self.node_id = node_id
        self.requested = requested
        super().__init__(f"Node '{node_id}' read '{requested}', which is not among its declared dependencies")


class ConstraintViolationError(ValueError):
    """Raised when a compute rule returns a value outside its node's constraints."""

    def __init__(self, node_id: str, messages: list[str]) -> None:
        self.node_id = node_id
        self.messages = messages
        super().__init__(f"Node '{node_id}' produced an invalid value: " + " ".join(messages))


class DependencyErrorPropagated(RuntimeError):
    """Raised when a computed node cannot run because a dependency is in error."""

    def __init__(self, node_id: str, dependency_id: str) -> None:
        self.node_id = node_id
        self.dependency_id = dependency_id
        super().__init__(f"Dependency '{dependency_id}' of node '{node_id}' is in error")


class SessionMismatchError(ValueError):
    """Raised when a state does not match the materialization of its parameters.

    Passing a state produced for other session parameters, or produced
    before the catalog changed without reinitializing, is a caller bug.
    """


class UnknownNodeError(KeyError):
    """Raised when an internal lookup names a node the catalog does not hold."""
