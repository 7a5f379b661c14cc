# tests/engine/test_validator.py
"""Tests for event validation."""

from tests.helpers.graphs import override, set_value, simple_sum_graph


def _validator_and_state(definitions):
    from taxgraph.contracts import SessionParameters
    from taxgraph.engine import EventValidator, TaxGraphEngine

    engine = TaxGraphEngine()
    engine.register_nodes(definitions)
    state = engine.initialize_session(SessionParameters(tax_year="2025", filing_status="single")).state
    return EventValidator(engine.graph), state


class TestValidationOrder:
    """The four checks, in order."""

    def test_valid_input_event(self) -> None:
        validator, state = _validator_and_state(simple_sum_graph())

        result = validator.validate(set_value("A", 100), state)

        assert result.valid
        assert result.errors == ()

    def test_unknown_node_returns_immediately(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        # Would also fail the sign check, but existence is checked first and alone
        result = validator.validate(override("Z", -1, note=""), state)

        assert not result.valid
        assert result.codes == [ValidationCode.NODE_NOT_FOUND]
        assert "Z" in result.errors[0].message

    def test_ordinary_event_on_computed_node(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        result = validator.validate(set_value("C", 5), state)

        assert result.codes == [ValidationCode.NODE_IS_COMPUTED]
        assert "override" in result.errors[0].message

    def test_override_on_computed_node_with_note(self) -> None:
        validator, state = _validator_and_state(simple_sum_graph())

        assert validator.validate(override("C", 5, note="Per amended W-2"), state).valid

    def test_override_without_note(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        assert validator.validate(override("C", 5, note=""), state).codes == [ValidationCode.OVERRIDE_REQUIRES_NOTE]
        assert validator.validate(override("C", 5, note="   "), state).codes == [ValidationCode.OVERRIDE_REQUIRES_NOTE]

    def test_override_with_missing_note_field(self) -> None:
        from taxgraph.contracts import EventSource, InputEvent, InstanceID, ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())
        event = InputEvent(InstanceID("A"), 5, source=EventSource.OVERRIDE)

        assert validator.validate(event, state).codes == [ValidationCode.OVERRIDE_REQUIRES_NOTE]

    def test_negative_value_rejected(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        result = validator.validate(set_value("A", -50), state)

        assert result.codes == [ValidationCode.NEGATIVE_NOT_ALLOWED]
        assert "-50" in result.errors[0].message

    def test_every_failing_check_is_collected(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        result = validator.validate(override("C", -5, note=""), state)

        assert result.codes == [ValidationCode.OVERRIDE_REQUIRES_NOTE, ValidationCode.NEGATIVE_NOT_ALLOWED]

    def test_none_clears_any_node(self) -> None:
        validator, state = _validator_and_state(simple_sum_graph())

        assert validator.validate(set_value("A", None), state).valid


class TestConstraintCodes:
    """Value shape and range checks."""

    def test_type_and_range_codes(self) -> None:
        from taxgraph.contracts import ValidationCode, ValueType, input_node

        validator, state = _validator_and_state(
            [
                input_node("dependents", value_type=ValueType.INTEGER, maximum=20),
                input_node("rate", value_type=ValueType.PERCENTAGE, minimum=0, maximum=100),
                input_node("status", default="single", value_type=ValueType.ENUM, allowed_values=("single", "joint")),
                input_node("birth_date", default=None, value_type=ValueType.DATE),
                input_node("blind", default=False, value_type=ValueType.BOOLEAN),
            ]
        )

        assert validator.validate(set_value("dependents", 2.5), state).codes == [ValidationCode.TYPE_MISMATCH]
        assert validator.validate(set_value("dependents", 21), state).codes == [ValidationCode.ABOVE_MAXIMUM]
        assert validator.validate(set_value("rate", 150), state).codes == [ValidationCode.ABOVE_MAXIMUM]
        assert validator.validate(set_value("status", "widow"), state).codes == [ValidationCode.INVALID_ENUM_VALUE]
        assert validator.validate(set_value("birth_date", "1980-13-01"), state).codes == [ValidationCode.INVALID_DATE]
        assert validator.validate(set_value("blind", "yes"), state).codes == [ValidationCode.TYPE_MISMATCH]
        assert validator.validate(set_value("blind", True), state).valid

    def test_bool_rejected_for_currency(self) -> None:
        from taxgraph.contracts import ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        assert validator.validate(set_value("A", True), state).codes == [ValidationCode.TYPE_MISMATCH]


class TestValidatorHasNoSideEffects:
    """Validation never touches state."""

    def test_state_unchanged(self) -> None:
        validator, state = _validator_and_state(simple_sum_graph())
        before = dict(state)

        validator.validate(set_value("A", 100), state)
        validator.validate(set_value("A", -100), state)

        assert dict(state) == before

    def test_engine_validate_matches_validator(self) -> None:
        from taxgraph.contracts import SessionParameters
        from taxgraph.engine import TaxGraphEngine

        engine = TaxGraphEngine()
        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(SessionParameters(tax_year="2025", filing_status="single")).state

        assert engine.validate(set_value("A", 1), state).valid
        assert not engine.validate(set_value("C", 1), state).valid


class TestValidateClear:
    """Clear-override requests."""

    def test_clear_requires_override_status(self) -> None:
        from taxgraph.contracts import ClearOverride, InstanceID, ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        result = validator.validate_clear(ClearOverride(InstanceID("C")), state)
        assert result.codes == [ValidationCode.OVERRIDE_NOT_SET]

    def test_clear_unknown_node(self) -> None:
        from taxgraph.contracts import ClearOverride, InstanceID, ValidationCode

        validator, state = _validator_and_state(simple_sum_graph())

        assert validator.validate_clear(ClearOverride(InstanceID("nope")), state).codes == [ValidationCode.NODE_NOT_FOUND]
