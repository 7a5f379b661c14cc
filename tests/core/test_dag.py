# tests/core/test_dag.py
"""Tests for dependency graph construction, validation, and ordering."""

import pytest

from tests.helpers.graphs import diamond_graph, simple_sum_graph, sum_node


class TestGraphBuilding:
    """Compiling registered definitions into a DependencyGraph."""

    def test_empty_graph(self) -> None:
        from taxgraph.core.dag import DependencyGraph

        graph = DependencyGraph.empty()
        assert graph.node_count == 0
        assert graph.edge_count == 0
        assert graph.topological_order == ()

    def test_sum_graph_shape(self) -> None:
        from taxgraph.core.dag import NodeCatalog

        catalog = NodeCatalog()
        graph = catalog.register(simple_sum_graph())

        assert graph.node_count == 3
        assert graph.edge_count == 2
        assert graph.has_instance("C")
        assert graph.dependencies("C") == ("A", "B")

    def test_dependents_index(self) -> None:
        from taxgraph.core.dag import NodeCatalog

        graph = NodeCatalog().register(diamond_graph())

        assert graph.dependents("A") == ("B", "C")
        assert graph.dependents("B") == ("D",)
        assert graph.dependents("D") == ()
        assert graph.transitive_dependents("A") == {"B", "C", "D"}
        assert graph.transitive_dependents("C") == {"D"}

    def test_unknown_instance_lookup_raises(self) -> None:
        from taxgraph.contracts import UnknownNodeError
        from taxgraph.core.dag import NodeCatalog

        graph = NodeCatalog().register(simple_sum_graph())

        with pytest.raises(UnknownNodeError, match="Node not found: Z"):
            graph.instance("Z")

    def test_nx_graph_copy_is_frozen(self) -> None:
        import networkx as nx

        from taxgraph.core.dag import NodeCatalog

        graph = NodeCatalog().register(simple_sum_graph())
        nx_graph = graph.get_nx_graph()

        assert set(nx_graph.edges()) == {("A", "C"), ("B", "C")}
        with pytest.raises(nx.NetworkXError):
            nx_graph.add_node("intruder")


class TestTopologicalOrder:
    """Deterministic evaluation order."""

    def test_diamond_order(self) -> None:
        from taxgraph.core.dag import NodeCatalog

        graph = NodeCatalog().register(diamond_graph())

        assert graph.topological_order == ("A", "B", "C", "D")

    def test_ties_follow_registration_order(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import NodeCatalog

        forward = NodeCatalog().register([input_node("X"), input_node("Y"), sum_node("Z", ["Y"])])
        backward = NodeCatalog().register([input_node("Y"), input_node("X"), sum_node("Z", ["Y"])])

        assert forward.topological_order == ("X", "Y", "Z")
        assert backward.topological_order == ("Y", "X", "Z")

    def test_edges_win_over_registration_order(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import NodeCatalog

        # Dependent registered before its dependency within one batch
        graph = NodeCatalog().register([sum_node("total", ["amount"]), input_node("amount")])

        assert graph.topological_order == ("amount", "total")

    def test_order_is_reproducible(self) -> None:
        from taxgraph.core.dag import NodeCatalog

        orders = {NodeCatalog().register(diamond_graph()).topological_order for _ in range(5)}
        assert len(orders) == 1

    def test_positions_match_order(self) -> None:
        from taxgraph.core.dag import NodeCatalog

        graph = NodeCatalog().register(diamond_graph())

        for index, instance_id in enumerate(graph.topological_order):
            assert graph.position(instance_id) == index

    def test_long_chain_does_not_hit_recursion_limit(self) -> None:
        import sys

        from taxgraph.core.dag import NodeCatalog
        from tests.helpers.graphs import chain_graph

        length = sys.getrecursionlimit() + 500
        graph = NodeCatalog().register(chain_graph(length))

        assert graph.topological_order[0] == "N0"
        assert graph.topological_order[-1] == f"N{length - 1}"


class TestStructuralErrors:
    """Fatal registration errors."""

    def test_two_node_cycle_rejected(self) -> None:
        from taxgraph.core.dag import CycleError, NodeCatalog

        catalog = NodeCatalog()
        with pytest.raises(CycleError, match="X -> Y -> X") as exc_info:
            catalog.register([sum_node("X", ["Y"]), sum_node("Y", ["X"])])

        assert exc_info.value.cycle == ["X", "Y", "X"]

    def test_three_node_cycle_rejected(self) -> None:
        from taxgraph.core.dag import CycleError, NodeCatalog

        with pytest.raises(CycleError) as exc_info:
            NodeCatalog().register([sum_node("A", ["C"]), sum_node("B", ["A"]), sum_node("C", ["B"])])

        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B", "C"}

    def test_self_loop_rejected(self) -> None:
        from taxgraph.core.dag import CycleError, NodeCatalog

        with pytest.raises(CycleError, match="S -> S"):
            NodeCatalog().register([sum_node("S", ["S"])])

    def test_cycle_through_inputs_and_computed_nodes(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import CycleError, NodeCatalog

        with pytest.raises(CycleError):
            NodeCatalog().register(
                [
                    input_node("base"),
                    sum_node("P", ["base", "R"]),
                    sum_node("Q", ["P"]),
                    sum_node("R", ["Q"]),
                ]
            )

    def test_unknown_dependency_rejected(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import NodeCatalog, UnknownDependencyError

        with pytest.raises(UnknownDependencyError) as exc_info:
            NodeCatalog().register([input_node("wages"), sum_node("total", ["wage"])])

        assert exc_info.value.node_id == "total"
        assert exc_info.value.dependency_id == "wage"
        assert "wages" in exc_info.value.suggestions
        assert "Did you mean: wages?" in str(exc_info.value)

    def test_dependency_must_be_registered_first(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import NodeCatalog, UnknownDependencyError

        catalog = NodeCatalog()
        with pytest.raises(UnknownDependencyError):
            catalog.register([sum_node("C", ["A"])])

        catalog.register([input_node("A")])
        catalog.register([sum_node("C", ["A"])])
        assert catalog.graph.topological_order == ("A", "C")

    def test_duplicate_across_batches_rejected(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import DuplicateNodeError, NodeCatalog

        catalog = NodeCatalog()
        catalog.register([input_node("A")])

        with pytest.raises(DuplicateNodeError, match="already registered"):
            catalog.register([input_node("A", default=5)])

    def test_duplicate_within_batch_rejected(self) -> None:
        from taxgraph.contracts import input_node
        from taxgraph.core.dag import DuplicateNodeError, NodeCatalog

        with pytest.raises(DuplicateNodeError):
            NodeCatalog().register([input_node("A"), input_node("A")])

    def test_structural_errors_are_value_errors(self) -> None:
        from taxgraph.core.dag import CycleError, DuplicateNodeError, GraphValidationError, UnknownDependencyError

        for error_type in (CycleError, DuplicateNodeError, UnknownDependencyError):
            assert issubclass(error_type, GraphValidationError)
            assert issubclass(error_type, ValueError)
