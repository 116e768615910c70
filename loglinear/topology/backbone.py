"""
loglinear/topology/backbone.py

Backbone forest selection from the nerve graph.

The backbone is a maximum spanning forest of the nerve (weighted by
interface size), rooted once per connected component. It is stored as an
arena: clique indices with explicit parent/children arrays and a
precomputed post-order, so message passing never recurses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import networkx as nx

from loglinear.core.errors import StructuralAssumptionViolated


@dataclass
class CliqueForest:
    """
    Rooted spanning forest over clique indices.

    Attributes:
        parent: parent[c] is c's parent clique, -1 for a root
        children: children[c] lists c's child cliques
        roots: one root per connected component
        component: component[c] is the index into roots of c's component
        postorder: every clique, children strictly before their parents
    """
    parent: List[int]
    children: List[List[int]]
    roots: List[int]
    component: List[int]
    postorder: List[int]

    @property
    def preorder(self) -> List[int]:
        """Every clique, parents strictly before their children."""
        return list(reversed(self.postorder))

    def __len__(self) -> int:
        return len(self.parent)


def choose_backbone_forest(nerve: nx.Graph) -> nx.Graph:
    """
    Choose the backbone forest from the nerve graph.

    Uses a maximum spanning forest by the 'weight' attribute; disconnected
    nerves yield one tree per component.
    """
    return nx.maximum_spanning_tree(nerve, weight="weight")


def root_forest(forest: nx.Graph, scopes: Sequence[Tuple[int, ...]]) -> CliqueForest:
    """
    Root every tree of a forest.

    The root of each component is the clique with the largest scope, ties
    broken by the lowest clique index.
    """
    n = len(scopes)
    parent = [-1] * n
    children: List[List[int]] = [[] for _ in range(n)]
    component = [-1] * n
    roots: List[int] = []
    order: List[int] = []

    components = sorted((sorted(c) for c in nx.connected_components(forest)), key=lambda c: c[0])
    for members in components:
        root = max(members, key=lambda c: (len(scopes[c]), -c))
        comp = len(roots)
        roots.append(root)
        component[root] = comp

        stack = [root]
        while stack:
            u = stack.pop()
            order.append(u)
            for v in sorted(forest.neighbors(u)):
                if v == parent[u] or component[v] != -1:
                    continue
                parent[v] = u
                component[v] = comp
                children[u].append(v)
                stack.append(v)

    # order is a pre-order (parents first); reversed it is a valid post-order
    return CliqueForest(
        parent=parent,
        children=children,
        roots=roots,
        component=component,
        postorder=list(reversed(order)),
    )


def build_clique_forest(nerve: nx.Graph, scopes: Sequence[Tuple[int, ...]]) -> CliqueForest:
    """Spanning forest of the nerve, rooted per component."""
    return root_forest(choose_backbone_forest(nerve), scopes)


def check_running_intersection(forest: CliqueForest, scopes: Sequence[Tuple[int, ...]]) -> None:
    """
    Verify that for every variable the cliques containing it form a
    connected subtree of the forest.

    Raises:
        StructuralAssumptionViolated: naming the first offending variable
    """
    nodes: Dict[int, int] = {}
    edges: Dict[int, int] = {}
    for c, scope in enumerate(scopes):
        for v in scope:
            nodes[v] = nodes.get(v, 0) + 1
        p = forest.parent[c]
        if p != -1:
            for v in set(scope).intersection(scopes[p]):
                edges[v] = edges.get(v, 0) + 1

    for v in sorted(nodes):
        # A sub-forest with k nodes is connected iff it has k - 1 edges
        if nodes[v] - edges.get(v, 0) != 1:
            raise StructuralAssumptionViolated(
                f"Variable {v} appears in {nodes[v]} cliques that do not form a connected subtree"
            )
