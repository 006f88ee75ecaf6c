"""Tests for containment resolution and the containment tree."""

import pytest

from calm_layout.config.settings import set_flag
from calm_layout.core.containment import (
    ContainmentConflictError,
    ContainmentCycleError,
    ContainmentTree,
    parent_maps_equal,
    resolve_containment,
)
from calm_layout.models.architecture import ComposedOf, Connects, Relationship


def composed_of(rel_id, container, nodes):
    return Relationship(unique_id=rel_id, relationship_type=ComposedOf(container=container, nodes=nodes))


def connects(rel_id, source, destination):
    return Relationship(
        unique_id=rel_id,
        relationship_type=Connects(source=source, destination=destination),
    )


class TestResolveContainment:
    """Test child -> container derivation."""

    def test_single_container(self):
        containment = resolve_containment([
            composed_of("r1", "A", ["B", "C"]),
            connects("r2", "B", "C"),
        ])
        assert containment.parent_of == {"B": "A", "C": "A"}
        assert containment.containers == {"A"}
        assert containment.is_container("A")
        assert not containment.is_container("B")
        assert containment.children("A") == ["B", "C"]
        assert containment.conflicts == []

    def test_no_relationships(self):
        containment = resolve_containment([])
        assert containment.parent_of == {}
        assert containment.containers == set()

    def test_empty_container_is_still_a_container(self):
        containment = resolve_containment([composed_of("r1", "A", [])])
        assert containment.is_container("A")
        assert containment.parent_of == {}

    def test_last_claim_wins_and_is_reported(self, caplog):
        """Test a node claimed twice keeps the last container."""
        containment = resolve_containment([
            composed_of("r1", "X", ["B"]),
            composed_of("r2", "Y", ["B"]),
        ])
        assert containment.parent("B") == "Y"
        assert len(containment.conflicts) == 1
        assert containment.conflicts[0].containers == ("X", "Y")
        assert containment.conflicts[0].winner == "Y"
        assert "claimed by containers" in caplog.text

    def test_repeated_claim_orders_by_last_occurrence(self):
        containment = resolve_containment([
            composed_of("r1", "X", ["B"]),
            composed_of("r2", "Y", ["B"]),
            composed_of("r3", "X", ["B"]),
        ])
        assert containment.parent("B") == "X"
        assert containment.conflicts[0].containers == ("Y", "X")

    def test_same_container_twice_is_no_conflict(self):
        containment = resolve_containment([
            composed_of("r1", "X", ["B"]),
            composed_of("r2", "X", ["B"]),
        ])
        assert containment.conflicts == []

    def test_strict_mode_raises(self):
        with pytest.raises(ContainmentConflictError) as exc_info:
            resolve_containment(
                [composed_of("r1", "X", ["B"]), composed_of("r2", "Y", ["B"])],
                strict=True,
            )
        assert exc_info.value.conflicts[0].child == "B"

    def test_strict_mode_from_feature_flag(self):
        set_flag("strict_containment", True)
        with pytest.raises(ContainmentConflictError):
            resolve_containment([composed_of("r1", "X", ["B"]), composed_of("r2", "Y", ["B"])])

    def test_restricted_to_known_nodes(self):
        containment = resolve_containment([
            composed_of("r1", "A", ["B", "ghost-child"]),
            composed_of("r2", "ghost", ["C"]),
        ])
        restricted = containment.restricted_to(["A", "B", "C"])
        assert restricted.parent_of == {"B": "A"}
        assert restricted.containers == {"A"}


class TestParentMapsEqual:

    def test_none_equals_empty(self):
        assert parent_maps_equal(None, {})

    def test_equal_maps(self):
        assert parent_maps_equal({"B": "A", "C": "A"}, {"C": "A", "B": "A"})

    def test_different_maps(self):
        assert not parent_maps_equal({"B": "A"}, {"B": "A", "C": "A"})
        assert not parent_maps_equal({"B": "A"}, {"B": "X"})


class TestContainmentTree:
    """Test the identity-indexed containment tree."""

    def test_roots_and_children(self):
        tree = ContainmentTree(["A", "B", "C", "D"], {"B": "A", "C": "A"})
        assert tree.roots == ["A", "D"]
        assert tree.children("A") == ["B", "C"]
        assert tree.children(None) == ["A", "D"]
        assert tree.parent("B") == "A"
        assert tree.parent("A") is None
        assert "C" in tree
        assert len(tree) == 4

    def test_unknown_parent_makes_root(self):
        tree = ContainmentTree(["B"], {"B": "missing"})
        assert tree.roots == ["B"]
        assert tree.parent("B") is None

    def test_nested_parents(self):
        tree = ContainmentTree(["A", "B", "C"], {"B": "A", "C": "B"})
        assert tree.parent("C") == "B"
        assert tree.parent(tree.parent("C")) == "A"
        assert tree.roots == ["A"]

    def test_post_order_visits_children_first(self):
        tree = ContainmentTree(["A", "B", "C", "D", "E"], {"B": "A", "C": "B", "D": "A"})
        order = list(tree.post_order())
        assert sorted(order) == ["A", "B", "C", "D", "E"]
        for child, parent in {"B": "A", "C": "B", "D": "A"}.items():
            assert order.index(child) < order.index(parent)

    def test_deep_nesting_does_not_recurse(self):
        ids = [f"n{i}" for i in range(3000)]
        parent_of = {ids[i]: ids[i - 1] for i in range(1, len(ids))}
        tree = ContainmentTree(ids, parent_of)
        order = list(tree.post_order())
        assert order[0] == ids[-1]
        assert order[-1] == ids[0]

    def test_cycle_detected(self):
        with pytest.raises(ContainmentCycleError) as exc_info:
            ContainmentTree(["A", "B", "C"], {"A": "B", "B": "A"})
        assert set(exc_info.value.cycle) == {"A", "B"}

    def test_self_containment_is_a_cycle(self):
        with pytest.raises(ContainmentCycleError):
            ContainmentTree(["A"], {"A": "A"})
