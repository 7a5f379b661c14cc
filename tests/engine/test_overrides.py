# tests/engine/test_overrides.py
"""Tests for sticky overrides and clearing them."""

from tests.helpers.graphs import diamond_graph, override, set_value, simple_sum_graph, sum_node


def _chain(engine):
    """A(input) -> B = A -> C = B -> D = C."""
    from taxgraph.contracts import input_node

    engine.register_nodes(
        [
            input_node("A"),
            sum_node("B", ["A"]),
            sum_node("C", ["B"]),
            sum_node("D", ["C"]),
        ]
    )


class TestOverrideEvents:
    """Applying overrides."""

    def test_override_sets_status_and_note(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state

        result = engine.process(override("C", 999, note="Per amended return"), state, params)
        snapshot = result.state["C"]

        assert snapshot.value == 999
        assert snapshot.status == NodeStatus.OVERRIDE
        assert snapshot.override_note == "Per amended return"
        assert result.summary.override_nodes == 1
        assert result.success

    def test_override_on_input_node(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state

        result = engine.process(override("A", 40, note="From prior-year carryover"), state, params)

        assert result.state.status("A") == NodeStatus.OVERRIDE
        assert result.state.value("C") == 40

    def test_override_dependents_recompute_from_override_value(self, engine, params) -> None:
        _chain(engine)
        state = engine.initialize_session(params).state

        result = engine.process(override("B", 50), state, params)

        assert result.state.value("C") == 50
        assert result.state.value("D") == 50
        assert result.frame.visit_order == ("C", "D")


class TestOverrideStickiness:
    """Upstream changes never move an overridden value."""

    def test_upstream_change_leaves_override_untouched(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus, SkipReason

        _chain(engine)
        state = engine.initialize_session(params).state
        state = engine.process(override("B", 50), state, params).state

        result = engine.process(set_value("A", 7), state, params)

        assert result.state.value("B") == 50
        assert result.state.status("B") == NodeStatus.OVERRIDE
        assert result.state["B"] is state["B"]
        assert "B" not in result.frame.visit_order
        assert "B" not in result.frame.changes
        assert result.frame.skipped["B"].reason == SkipReason.OVERRIDE_PROTECTED

    def test_propagation_passes_through_override(self, engine, params) -> None:
        _chain(engine)
        state = engine.initialize_session(params).state
        state = engine.process(override("B", 50), state, params).state

        result = engine.process(set_value("A", 7), state, params)

        # C and D are re-evaluated, but from the override's value
        assert result.frame.visit_order == ("C", "D")
        assert result.state.value("C") == 50
        assert result.state.value("D") == 50
        assert result.frame.changed_ids == {"A"}

    def test_override_in_diamond(self, engine, params) -> None:
        engine.register_nodes(diamond_graph())
        state = engine.initialize_session(params).state
        state = engine.process(override("C", 100), state, params).state

        result = engine.process(set_value("A", 10), state, params)

        # B = 20 from the new A; C stays at its override
        assert result.state.value("B") == 20
        assert result.state.value("C") == 100
        assert result.state.value("D") == 120

    def test_new_override_replaces_old(self, engine, params) -> None:
        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state
        state = engine.process(override("C", 5, note="first"), state, params).state

        result = engine.process(override("C", 6, note="second"), state, params)

        assert result.state.value("C") == 6
        assert result.state["C"].override_note == "second"

    def test_ordinary_event_ends_input_override(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state
        state = engine.process(override("A", 5), state, params).state

        result = engine.process(set_value("A", 6), state, params)

        assert result.state.status("A") == NodeStatus.CLEAN
        assert result.state.value("C") == 6


class TestClearOverride:
    """Ending a standing override."""

    def test_clear_computed_override_recomputes(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        _chain(engine)
        state = engine.initialize_session(params).state
        state = engine.process(set_value("A", 3), state, params).state
        state = engine.process(override("B", 50), state, params).state

        result = engine.clear_override("B", state, params)

        assert result.success
        assert result.state.status("B") == NodeStatus.CLEAN
        assert result.state["B"].override_note is None
        assert result.state.value("B") == 3
        assert result.state.value("D") == 3
        assert result.frame.visit_order == ("B", "C", "D")
        assert result.frame.changed_ids == {"B", "C", "D"}

    def test_clear_input_override_keeps_value(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state
        state = engine.process(override("A", 12), state, params).state

        result = engine.clear_override("A", state, params)

        assert result.state.status("A") == NodeStatus.CLEAN
        assert result.state.value("A") == 12
        assert result.frame.visit_order == ()
        assert result.frame.changed_ids == {"A"}

    def test_clear_records_trigger(self, engine, clock, params) -> None:
        from taxgraph.contracts import ClearOverride

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state
        state = engine.process(override("C", 1), state, params).state

        frame = engine.clear_override("C", state, params).frame

        assert isinstance(frame.trigger, ClearOverride)
        assert frame.trigger.instance_id == "C"
        assert frame.trigger.timestamp.tzinfo is not None

    def test_clear_without_override_rejected(self, engine, params) -> None:
        from taxgraph.contracts import ValidationCode

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state

        result = engine.clear_override("C", state, params)

        assert result.success is False
        assert result.current_state is state
        assert result.frame.rejection.codes == [ValidationCode.OVERRIDE_NOT_SET]

    def test_clear_unknown_rejected(self, engine, params) -> None:
        from taxgraph.contracts import ValidationCode

        engine.register_nodes(simple_sum_graph())
        state = engine.initialize_session(params).state

        result = engine.clear_override("nope", state, params)

        assert result.frame.rejection.codes == [ValidationCode.NODE_NOT_FOUND]

    def test_clear_respects_downstream_overrides(self, engine, params) -> None:
        from taxgraph.contracts import NodeStatus

        _chain(engine)
        state = engine.initialize_session(params).state
        state = engine.process(set_value("A", 2), state, params).state
        state = engine.process(override("B", 10), state, params).state
        state = engine.process(override("C", 99), state, params).state

        result = engine.clear_override("B", state, params)

        assert result.state.value("B") == 2
        assert result.state.status("C") == NodeStatus.OVERRIDE
        assert result.state.value("C") == 99
        assert result.state.value("D") == 99
