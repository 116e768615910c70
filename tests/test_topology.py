"""
Tests for topology module.
"""

import pytest

from loglinear.core.errors import StructuralAssumptionViolated
from loglinear.topology.backbone import (
    CliqueForest,
    build_clique_forest,
    check_running_intersection,
)
from loglinear.topology.nerve import build_nerve_graph, interface


class TestNerve:
    def test_chain_nerve(self):
        scopes = [(0, 1), (1, 2)]
        nerve = build_nerve_graph(scopes)

        assert nerve.has_node(0)
        assert nerve.has_node(1)
        assert nerve.has_edge(0, 1)
        assert interface(nerve, 0, 1) == (1,)
        assert nerve[0][1]["weight"] == 1

    def test_disjoint_nerve(self):
        nerve = build_nerve_graph([(0,), (1,)])

        assert nerve.number_of_edges() == 0
        assert interface(nerve, 0, 1) == ()

    def test_interface_weight(self):
        nerve = build_nerve_graph([(0, 1, 2), (2, 1), (2,)])

        assert interface(nerve, 0, 1) == (1, 2)
        assert nerve[0][1]["weight"] == 2
        assert nerve[0][2]["weight"] == 1


class TestCliqueForest:
    def test_chain_postorder(self):
        scopes = [(0,), (0, 1), (1, 2), (2,)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        assert len(forest) == 4
        assert len(forest.roots) == 1
        position = {c: i for i, c in enumerate(forest.postorder)}
        for c in range(4):
            p = forest.parent[c]
            if p != -1:
                assert position[c] < position[p]
                assert c in forest.children[p]
        assert forest.postorder[-1] == forest.roots[0]

    def test_root_is_largest_clique(self):
        scopes = [(0,), (0, 1, 2), (2, 3)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        assert forest.roots == [1]
        assert forest.parent[1] == -1

    def test_components(self):
        scopes = [(0, 1), (2,), (1,), (2, 3)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        assert len(forest.roots) == 2
        assert forest.component[0] == forest.component[2]
        assert forest.component[1] == forest.component[3]
        assert forest.component[0] != forest.component[1]

    def test_prefers_large_interfaces(self):
        # (0,1,2)-(1,2,3) must be joined directly, not through the (1,) or (2,) cliques
        scopes = [(0, 1, 2), (1,), (1, 2, 3), (2,)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        assert forest.parent[0] == 2 or forest.parent[2] == 0
        check_running_intersection(forest, scopes)

    def test_long_chain_is_iterative(self):
        scopes = [(i, i + 1) for i in range(5000)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        assert len(forest.postorder) == 5000
        assert len(forest.roots) == 1


class TestRunningIntersection:
    def test_cycle_violates(self):
        scopes = [(0, 1), (1, 2), (2, 0)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        with pytest.raises(StructuralAssumptionViolated):
            check_running_intersection(forest, scopes)

    def test_tree_passes(self):
        scopes = [(0, 1), (1, 2), (1, 3), (3,)]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)

        check_running_intersection(forest, scopes)

    def test_handmade_forest_violates(self):
        scopes = [(0, 1), (2,), (1, 2)]
        forest = CliqueForest(
            parent=[-1, 0, 1],
            children=[[1], [2], []],
            roots=[0],
            component=[0, 0, 0],
            postorder=[2, 1, 0],
        )

        with pytest.raises(StructuralAssumptionViolated):
            check_running_intersection(forest, scopes)
