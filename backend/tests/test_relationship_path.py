"""Tests for shortest relationship paths between two people."""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import NotFoundError
from family_graph import FamilyGraph
from models import Person
from relationship_path import (
    MAX_PATH_DEPTH,
    build_adjacency,
    clamp_path_depth,
    describe_path,
    find_path,
    load_relationship_path,
)


def lineage(generations: int) -> FamilyGraph:
    """g0 is the child of g1, g1 of g2, and so on."""
    graph = FamilyGraph("g0")
    for i in range(generations + 1):
        graph.persons[f"g{i}"] = Person(id=f"g{i}")
    for i in range(generations):
        graph.add_parent_child(f"g{i + 1}", f"g{i}")
    return graph


# ============================================================================
# Search
# ============================================================================

class TestFindPath:
    """Tests for the bounded breadth-first search."""

    def test_edges_walked_both_ways(self, anna_graph):
        adjacency = build_adjacency(anna_graph)
        assert ("p-maria", "parent") in adjacency["p-anna"]
        assert ("p-anna", "child") in adjacency["p-maria"]
        assert ("p-alexei", "spouse") in adjacency["p-anna"]
        assert ("p-anna", "sibling") in adjacency["p-nikolai"]

    def test_same_person(self, anna_graph):
        assert find_path(anna_graph, "p-anna", "p-anna") == []

    def test_unknown_person(self, anna_graph):
        assert find_path(anna_graph, "p-anna", "p-nobody") is None

    def test_cousin_path(self, anna_graph):
        steps = find_path(anna_graph, "p-anna", "p-dmitri")
        assert steps == [
            ("p-maria", "parent"),
            ("p-ivan", "parent"),
            ("p-elena", "child"),
            ("p-dmitri", "child"),
        ]

    def test_depth_bound(self, anna_graph):
        assert find_path(anna_graph, "p-anna", "p-dmitri", max_depth=3) is None
        assert len(find_path(anna_graph, "p-anna", "p-dmitri", max_depth=4)) == 4

    def test_shortest_path_preferred(self):
        graph = lineage(3)
        graph.declared_siblings.add(frozenset(("g0", "g3")))
        assert find_path(graph, "g0", "g3") == [("g3", "sibling")]

    @pytest.mark.parametrize("requested,expected", [
        (None, 15),
        (0, 1),
        (5, 5),
        (50, MAX_PATH_DEPTH),
    ])
    def test_clamp_path_depth(self, requested, expected):
        assert clamp_path_depth(requested) == expected


# ============================================================================
# Description
# ============================================================================

class TestDescribePath:
    """Tests for turning a path into a relationship."""

    def test_first_cousin(self, anna_graph):
        result = describe_path(anna_graph, "p-anna", "p-dmitri")
        assert result["found"] is True
        assert result["pathLength"] == 4
        assert result["hops"] == ["parent", "parent", "child", "child"]
        assert result["descriptor"]["code"] == "cousin"
        assert result["descriptor"]["qualifiers"] == {"cousin_degree": 1, "cousin_removed": 0}
        assert result["relationshipLabel"] == "first cousin"
        assert result["category"] == "cousin"
        assert result["degreeOfSeparation"] == "4th degree"

    def test_first_cousin_russian(self, anna_graph):
        result = describe_path(anna_graph, "p-anna", "p-dmitri", locale="ru")
        assert result["relationshipLabel"] == "двоюродный брат"
        assert result["degreeOfSeparation"] == "4-я степень родства"

    def test_path_steps(self, anna_graph):
        path = describe_path(anna_graph, "p-anna", "p-dmitri")["path"]
        assert [p["id"] for p in path] == ["p-anna", "p-maria", "p-ivan", "p-elena", "p-dmitri"]
        assert [p["direction"] for p in path] == ["up", "up", "down", "down", None]
        assert path[0]["relationship"] == "parent"
        assert path[-1]["relationship"] is None
        assert path[-1]["name"] == "Dmitri Ivanov"

    def test_direct_relations(self, anna_graph):
        sibling = describe_path(anna_graph, "p-anna", "p-nikolai")
        assert sibling["hops"] == ["sibling"]
        assert sibling["relationshipLabel"] == "brother"
        assert sibling["degreeOfSeparation"] == "Directly related"

        spouse = describe_path(anna_graph, "p-anna", "p-alexei")
        assert spouse["relationshipLabel"] == "husband"
        assert spouse["category"] == "direct"

    def test_placeholder_grandparent(self, anna_graph):
        result = describe_path(anna_graph, "p-anna", "d13")
        assert result["hops"] == ["parent", "parent"]
        assert result["descriptor"]["code"] == "grandparent"
        assert result["relationshipLabel"] == "grandfather"

    def test_same_person(self, anna_graph):
        result = describe_path(anna_graph, "p-anna", "p-anna")
        assert result["found"] is True
        assert result["pathLength"] == 0
        assert [p["id"] for p in result["path"]] == ["p-anna"]
        assert result["category"] == "self"
        assert result["degreeOfSeparation"] == "Same person"

    def test_depth_capped(self):
        graph = lineage(MAX_PATH_DEPTH + 1)
        assert describe_path(graph, "g0", f"g{MAX_PATH_DEPTH}", max_depth=100)["found"] is True
        result = describe_path(graph, "g0", f"g{MAX_PATH_DEPTH + 1}", max_depth=100)
        assert result["found"] is False


class TestLoadRelationshipPath:
    """Tests for paths read from a record store."""

    def test_cousin_from_store(self, store):
        result = load_relationship_path(store, "p-anna", "p-dmitri")
        assert result["relationshipLabel"] == "first cousin"

    def test_unconnected_person(self, store):
        result = load_relationship_path(store, "p-anna", "p-olga-dup")
        assert result["found"] is False
        assert result["pathLength"] == 0
        assert result["relationshipLabel"] == "No connection found"
        assert result["category"] == "other"

    def test_unconnected_russian(self, store):
        result = load_relationship_path(store, "p-anna", "p-olga-dup", locale="ru")
        assert result["relationshipLabel"] == "Связь не найдена"
        assert result["degreeOfSeparation"] == "Не связаны"

    def test_unknown_target(self, store):
        with pytest.raises(NotFoundError):
            load_relationship_path(store, "p-anna", "p-nobody")

    def test_unknown_start(self, store):
        with pytest.raises(NotFoundError):
            load_relationship_path(store, "p-nobody", "p-anna")
