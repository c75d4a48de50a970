"""
Tests for dependency-order fragment accumulation and scheduling.
"""

import asyncio

import pytest
from loguru import logger

from criticality.accumulator import (
    DependencyScheduler,
    FragmentAccumulator,
    group_unit_edges,
)
from criticality.errors import (
    DependencyCycleError,
    DuplicateFragmentError,
    MissingFragmentError,
)
from criticality.graph import Graph
from criticality.registry import FragmentRegistry
from criticality.schemas import EdgeKey, NodeKey


# Root -> {X, Y}, X -> Shared, Y -> Shared, Shared -> Core
DIAMOND = [
    ("Root", "Root", "X"),
    ("Root", "Root", "Y"),
    ("X", "X", "Shared"),
    ("Y", "Y", "Shared"),
    ("Shared", "Shared", "Core"),
]


def weights(graph):
    return {str(key): edge.weight for key, edge in graph.edges.items()}


@pytest.fixture
def accumulator():
    return FragmentAccumulator(root_unit="Root")


@pytest.fixture
def warning_messages():
    """Collect loguru WARNING messages emitted during a test."""
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def diamond_fragments(accumulator):
    """Process the diamond by hand in dependency order."""
    accumulator.process_unit("Core", [])
    accumulator.process_unit("Shared", ["Core"])
    accumulator.process_unit("X", ["Shared"])
    accumulator.process_unit("Y", ["Shared"])
    accumulator.process_unit("Root", ["X", "Y"])
    return accumulator


class TestFragmentAccumulator:
    """Per-unit processing."""

    def test_shared_dependency_counted_once(self, diamond_fragments):
        whole = diamond_fragments.result
        assert whole is not None
        assert weights(whole) == {
            "Root:Root->X": 1.0,
            "Root:Root->Y": 1.0,
            "X:X->Shared": 1.0,
            "Y:Y->Shared": 1.0,
            "Shared:Shared->Core": 1.0,
        }
        assert whole.added_containers == {"Root", "X", "Y", "Shared", "Core"}

    def test_overlap_recorded_for_second_path(self, diamond_fragments):
        # Y's fragment repeats Shared's edge, already folded in through X
        assert diamond_fragments.overlap_by_unit["Root"] == 1
        assert diamond_fragments.overlap_by_unit["X"] == 0

    def test_fragments_are_frozen_and_published(self, diamond_fragments):
        registry = diamond_fragments.registry
        assert registry.units() == ["Core", "Root", "Shared", "X", "Y"]
        assert all(registry.get(u).frozen for u in registry.units())

    def test_published_dependency_not_mutated(self, diamond_fragments):
        shared = diamond_fragments.registry.get("Shared")
        assert weights(shared) == {"Shared:Shared->Core": 1.0}

    def test_leaf_unit_is_a_node(self, diamond_fragments):
        core = diamond_fragments.registry.get("Core")
        assert core.size() == 0
        assert core.order() == 1
        assert NodeKey("Core") in diamond_fragments.result.nodes

    def test_already_visited_is_not_reprocessed(self, accumulator):
        first = accumulator.process_unit("Core", [])
        again = accumulator.process_unit("Core", ["Other"])
        assert again is first
        assert again.size() == 0

    def test_missing_dependency_is_fatal(self, accumulator):
        with pytest.raises(MissingFragmentError) as exc:
            accumulator.process_unit("A", ["B"])
        assert exc.value.unit == "B"
        assert exc.value.requested_by == "A"
        assert "A" not in accumulator.registry

    def test_duplicate_imports_accumulate_seed_weight(self, accumulator):
        accumulator.process_unit("B", [])
        fragment = accumulator.process_unit("A", ["B", "B"])
        assert fragment.edges[EdgeKey("A", "A->B")].weight == 2.0

    def test_extra_edges_need_no_fragment(self, accumulator):
        fragment = accumulator.process_unit("pkg", [], extra_edges=[("pkg/sub", "fmt")])
        assert EdgeKey("pkg", "pkg/sub->fmt") in fragment.edges

    def test_invalid_local_edge_is_logged(self, accumulator, warning_messages):
        fragment = accumulator.process_unit("pkg", [], extra_edges=[("pkg/sub", "")])
        key = EdgeKey("pkg", "pkg/sub->")
        assert key in fragment.invalid_edges
        assert len(warning_messages) == 1
        assert "[pkg] invalid edge pkg:pkg/sub->: invalid dst" in warning_messages[0]

    def test_inherited_invalid_edge_not_logged_again(self, accumulator, warning_messages):
        accumulator.process_unit("B", [], extra_edges=[("B/sub", "")])
        fragment = accumulator.process_unit("A", ["B"])
        assert EdgeKey("B", "B/sub->") in fragment.invalid_edges
        assert len(warning_messages) == 1
        assert warning_messages[0].startswith("[B] invalid edge")

    def test_result_only_set_for_root(self, accumulator):
        accumulator.process_unit("Core", [])
        assert accumulator.result is None


class TestFragmentRegistry:

    def test_write_once(self):
        registry = FragmentRegistry()
        registry.publish("A", Graph.for_unit("A"))
        with pytest.raises(DuplicateFragmentError):
            registry.publish("A", Graph.for_unit("A"))

    def test_publish_freezes(self):
        registry = FragmentRegistry()
        fragment = registry.publish("A", Graph.for_unit("A"))
        assert fragment.frozen
        assert "A" in registry
        assert len(registry) == 1

    def test_missing_lookup(self):
        with pytest.raises(MissingFragmentError):
            FragmentRegistry().get("nope")


class TestDependencyScheduler:
    """Ordering and whole-program graph selection."""

    def test_group_unit_edges(self):
        grouped = group_unit_edges(DIAMOND)
        assert grouped["Root"] == [("Root", "X"), ("Root", "Y")]
        assert "Core" not in grouped

    def test_schedule_generations(self):
        scheduler = DependencyScheduler.from_triples(DIAMOND)
        assert scheduler.schedule() == [["Core"], ["Shared"], ["X", "Y"], ["Root"]]

    def test_run_matches_manual_processing(self, diamond_fragments):
        whole = DependencyScheduler.from_triples(DIAMOND, root_unit="Root").run()
        assert weights(whole) == weights(diamond_fragments.result)

    def test_run_async_matches_run(self):
        sequential = DependencyScheduler.from_triples(DIAMOND, root_unit="Root").run()
        concurrent = asyncio.run(
            DependencyScheduler.from_triples(DIAMOND, root_unit="Root").run_async(concurrency=4)
        )
        assert weights(concurrent) == weights(sequential)

    def test_single_top_unit_used_without_root(self):
        whole = DependencyScheduler.from_triples(DIAMOND).run()
        assert whole.container == "Root"
        assert whole.size() == 5

    def test_several_top_units_folded(self):
        triples = [("A", "A", "C"), ("B", "B", "C")]
        whole = DependencyScheduler.from_triples(triples).run()
        assert whole.container == ""
        assert weights(whole) == {"A:A->C": 1.0, "B:B->C": 1.0}
        assert whole.order() == 3

    def test_non_root_intermediate(self):
        whole = DependencyScheduler.from_triples(DIAMOND, root_unit="X").run()
        assert weights(whole) == {"X:X->Shared": 1.0, "Shared:Shared->Core": 1.0}

    def test_unknown_root(self):
        scheduler = DependencyScheduler.from_triples(DIAMOND, root_unit="Nope")
        with pytest.raises(MissingFragmentError):
            scheduler.run()

    def test_cycle_detected(self):
        triples = [("A", "A", "B"), ("B", "B", "C"), ("C", "C", "A")]
        with pytest.raises(DependencyCycleError):
            DependencyScheduler.from_triples(triples).run()

    def test_empty_input(self):
        whole = DependencyScheduler({}).run()
        assert whole.size() == 0
        assert whole.order() == 0

    def test_extra_edges_kept(self):
        triples = [("pkg", "pkg", "dep"), ("pkg", "pkg/sub", "fmt")]
        scheduler = DependencyScheduler.from_triples(triples, root_unit="pkg")
        assert scheduler.plans["pkg"].imports == ["dep"]
        assert scheduler.plans["pkg"].extra_edges == [("pkg/sub", "fmt")]
        assert "fmt" not in scheduler.plans
        whole = scheduler.run()
        assert EdgeKey("pkg", "pkg/sub->fmt") in whole.edges
