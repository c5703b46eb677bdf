"""Tests for the flag implication graph."""

import itertools

import pytest

from modplan.errors import CycleError, FrozenError, UnknownFlagError
from modplan.flags import FlagGraph


def _graph(*edges: tuple[str, str], flags: tuple[str, ...] = ()) -> FlagGraph:
    g = FlagGraph()
    for flag in flags:
        g.declare(flag)
    for src, dst in edges:
        g.add_implication(src, dst)
    return g


# ---------------------------------------------------------------------------
# add_implication()
# ---------------------------------------------------------------------------


class TestAddImplication:
    def test_declares_both_endpoints(self) -> None:
        g = _graph(("trace", "trace-app"))
        assert "trace" in g
        assert "trace-app" in g
        assert g.edges() == [("trace", "trace-app")]

    def test_duplicate_edge_is_noop(self) -> None:
        g = _graph(("a", "b"), ("a", "b"))
        assert g.edges() == [("a", "b")]

    def test_diamond_allowed(self) -> None:
        g = _graph(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"))
        assert g.closure({"a"}) == {"a", "b", "c", "d"}

    def test_three_cycle_rejected(self) -> None:
        g = _graph(("A", "B"), ("B", "C"))
        with pytest.raises(CycleError) as exc_info:
            g.add_implication("C", "A")
        assert exc_info.value.source == "C"
        assert exc_info.value.target == "A"
        assert exc_info.value.path == ("A", "B", "C")
        assert "C -> A -> B -> C" in str(exc_info.value)

    def test_cycle_leaves_graph_unchanged(self) -> None:
        g = _graph(("A", "B"), ("B", "C"))
        before_flags = g.flags()
        before_edges = g.edges()
        with pytest.raises(CycleError):
            g.add_implication("C", "A")
        assert g.flags() == before_flags
        assert g.edges() == before_edges
        assert g.closure({"C"}) == {"C"}

    def test_self_edge_rejected(self) -> None:
        g = FlagGraph()
        with pytest.raises(CycleError):
            g.add_implication("x", "x")
        assert "x" not in g

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            FlagGraph().add_implication("", "x")

    def test_frozen_graph_rejects_writes(self) -> None:
        g = _graph(("a", "b"))
        g.freeze()
        with pytest.raises(FrozenError):
            g.add_implication("b", "c")
        with pytest.raises(FrozenError):
            g.declare("z")
        assert g.frozen


# ---------------------------------------------------------------------------
# closure()
# ---------------------------------------------------------------------------


class TestClosure:
    def test_trace_forwarding(self) -> None:
        g = _graph(("trace", "trace-app"), ("trace", "trace-render"))
        assert g.closure({"trace"}) == {"trace", "trace-app", "trace-render"}

    def test_transitive(self) -> None:
        g = _graph(("a", "b"), ("b", "c"), ("c", "d"))
        assert g.closure(["a"]) == {"a", "b", "c", "d"}

    def test_empty(self) -> None:
        assert _graph(("a", "b")).closure(set()) == frozenset()

    def test_idempotent(self) -> None:
        g = _graph(("a", "b"), ("b", "c"), ("x", "c"), flags=("lonely",))
        for size in range(len(g) + 1):
            for subset in itertools.combinations(g.flags(), size):
                once = g.closure(subset)
                assert g.closure(once) == once

    def test_order_independent(self) -> None:
        g = _graph(("a", "b"), ("c", "d"), ("b", "d"))
        results = {g.closure(list(p)) for p in itertools.permutations(["a", "c", "d"])}
        assert len(results) == 1

    def test_unknown_flag(self) -> None:
        g = _graph(("a", "b"))
        with pytest.raises(UnknownFlagError) as exc_info:
            g.closure({"a", "nope"})
        assert exc_info.value.flags == ("nope",)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_path_shortest(self) -> None:
        g = _graph(("a", "b"), ("b", "c"), ("a", "c"))
        assert g.path("a", "c") == ("a", "c")

    def test_path_missing(self) -> None:
        g = _graph(("a", "b"), flags=("z",))
        assert g.path("b", "a") is None
        assert g.path("a", "z") is None

    def test_path_unknown_flag(self) -> None:
        with pytest.raises(UnknownFlagError):
            _graph(("a", "b")).path("a", "nope")

    def test_implied_by(self) -> None:
        g = _graph(("a", "c"), ("a", "b"))
        assert g.implied_by("a") == ("c", "b")
        assert g.implied_by("b") == ()

    def test_topological_order(self) -> None:
        g = _graph(("c", "a"), ("b", "a"), flags=("z",))
        order = g.topological_order()
        assert order.index("c") < order.index("a")
        assert order.index("b") < order.index("a")
        assert sorted(order) == sorted(g.flags())

    def test_topological_order_tie_break_is_declaration_order(self) -> None:
        g = _graph(flags=("z", "y", "x"))
        assert g.topological_order() == ["z", "y", "x"]
