"""All status codes, kinds, and reasons used across subsystem boundaries.

Values are lowercase strings so snapshots and trace frames serialize to
plain JSON without a custom encoder.
"""

from enum import StrEnum


class NodeKind(StrEnum):
    """Where a node's value comes from.

    Values:
        INPUT: Supplied from outside the graph (preparer entry, OCR, upload)
        COMPUTED: Derived from declared dependencies by a pure rule
    """

    INPUT = "input"
    COMPUTED = "computed"


class NodeStatus(StrEnum):
    """Lifecycle state of a node instance within a session.

    DIRTY only exists while a compute pass is running. A state handed back
    to a caller never contains it.
    """

    CLEAN = "clean"
    DIRTY = "dirty"
    SKIPPED = "skipped"
    OVERRIDE = "override"
    ERROR = "error"


class NodeOwner(StrEnum):
    """Who a node's value belongs to on the return.

    Repeatable nodes are declared with PRIMARY ownership and mirrored to a
    SPOUSE instance when the session declares a second filer.
    """

    PRIMARY = "primary"
    SPOUSE = "spouse"
    JOINT = "joint"


class ValueType(StrEnum):
    """Declared shape of a node value."""

    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"
    DATE = "date"
    STRING = "string"


class EventSource(StrEnum):
    """Origin of an input event.

    OVERRIDE is the only source that may target a computed node, and it
    must carry an override note.
    """

    PREPARER = "preparer"
    OCR = "ocr"
    UPLOAD = "upload"
    SYSTEM = "system"
    OVERRIDE = "override"


class SkipReason(StrEnum):
    """Why a visited or reached node did not produce a computed value."""

    NOT_APPLICABLE = "not_applicable"
    NO_VALUE = "no_value"
    OVERRIDE_PROTECTED = "override_protected"


class ValidationCode(StrEnum):
    """Codes returned by the event validator.

    Stable strings: UI layers key their inline messages on them.
    """

    NODE_NOT_FOUND = "node_not_found"
    NODE_IS_COMPUTED = "node_is_computed"
    OVERRIDE_REQUIRES_NOTE = "override_requires_note"
    OVERRIDE_NOT_SET = "override_not_set"
    TYPE_MISMATCH = "type_mismatch"
    NEGATIVE_NOT_ALLOWED = "negative_not_allowed"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    INVALID_DATE = "invalid_date"
