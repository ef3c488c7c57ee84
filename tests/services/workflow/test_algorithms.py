"""Tests for GraphAlgorithms.

Covers cycle detection, reachability, duplicate input-port detection
and Kahn ordering.
"""

import pytest

from flowengine.services.workflow.algorithms import GraphAlgorithms
from flowengine.services.workflow.graph import Edge, Graph, Node

# =============================================================================
# TEST FIXTURES
# =============================================================================


def make_graph(node_ids: list[str], edges: list[tuple[str, str]]) -> Graph:
    graph = Graph()
    for node_id in node_ids:
        graph.add_node(Node(id=node_id, type="test"))
    for source, target in edges:
        graph.add_edge(Edge(source, target))
    return graph


@pytest.fixture
def diamond() -> Graph:
    """a -> b, a -> c, b -> d, c -> d."""
    return make_graph(
        ["a", "b", "c", "d"],
        [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")],
    )


# =============================================================================
# CYCLE DETECTION
# =============================================================================


class TestFindCycles:
    """Tests for cycle detection."""

    def test_acyclic_graph(self, diamond: Graph) -> None:
        assert GraphAlgorithms.find_cycles(diamond) == []
        assert not GraphAlgorithms.has_cycle(diamond)

    def test_simple_cycle(self) -> None:
        graph = make_graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("c", "a")])

        cycles = GraphAlgorithms.find_cycles(graph)

        assert cycles == [["a", "b", "c", "a"]]
        assert GraphAlgorithms.has_cycle(graph)

    def test_self_loop(self) -> None:
        graph = make_graph(["a"], [("a", "a")])

        assert GraphAlgorithms.find_cycles(graph) == [["a", "a"]]

    def test_overlapping_cycles_all_reported(self) -> None:
        graph = make_graph(
            ["a", "b", "c"],
            [("a", "b"), ("b", "a"), ("b", "c"), ("c", "b")],
        )

        cycles = GraphAlgorithms.find_cycles(graph)

        assert len(cycles) == 2
        assert ["a", "b", "a"] in cycles
        assert ["b", "c", "b"] in cycles

    def test_long_chain_does_not_recurse(self) -> None:
        ids = [f"n{i}" for i in range(5000)]
        graph = make_graph(ids, list(zip(ids, ids[1:], strict=False)))

        assert GraphAlgorithms.find_cycles(graph) == []


# =============================================================================
# REACHABILITY
# =============================================================================


class TestReachability:
    """Tests for reachability analysis."""

    def test_reachable_from_entry(self, diamond: Graph) -> None:
        assert GraphAlgorithms.find_reachable_from(diamond, "a") == {"a", "b", "c", "d"}

    def test_reachable_from_inner_node(self, diamond: Graph) -> None:
        assert GraphAlgorithms.find_reachable_from(diamond, "b") == {"b", "d"}

    def test_unreachable_nodes_in_graph_order(self) -> None:
        graph = make_graph(["a", "b", "x", "y"], [("a", "b"), ("x", "y")])

        assert GraphAlgorithms.find_unreachable_from(graph, "a") == ["x", "y"]


# =============================================================================
# DUPLICATE INPUT WRITES
# =============================================================================


class TestDuplicateInputWrites:
    """Tests for ambiguous writes to the same input port."""

    def test_same_source_twice_is_duplicate(self) -> None:
        graph = make_graph(["a", "b"], [("a", "b"), ("a", "b")])

        duplicates = GraphAlgorithms.find_duplicate_input_writes(graph)

        assert duplicates == [Edge("a", "b")]

    def test_different_sources_may_share_a_port(self, diamond: Graph) -> None:
        assert GraphAlgorithms.find_duplicate_input_writes(diamond) == []

    def test_same_source_different_ports(self) -> None:
        graph = make_graph(["a", "b"], [])
        graph.add_edge(Edge("a", "b", target_input="left"))
        graph.add_edge(Edge("a", "b", target_input="right"))

        assert GraphAlgorithms.find_duplicate_input_writes(graph) == []


# =============================================================================
# KAHN ORDER
# =============================================================================


class TestKahnOrder:
    """Tests for Kahn's algorithm."""

    def test_order_and_levels(self, diamond: Graph) -> None:
        order, levels = GraphAlgorithms.kahn_order(diamond)

        assert order == ["a", "b", "c", "d"]
        assert levels == {"a": 0, "b": 1, "c": 1, "d": 2}

    def test_level_uses_longest_path(self) -> None:
        graph = make_graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("a", "c")])

        _, levels = GraphAlgorithms.kahn_order(graph)

        assert levels["c"] == 2

    def test_cycle_members_are_left_out(self) -> None:
        graph = make_graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("c", "b")])

        order, levels = GraphAlgorithms.kahn_order(graph)

        assert order == ["a"]
        assert set(levels) == {"a"}
