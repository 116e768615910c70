"""
loglinear/topology/nerve.py

Nerve graph construction from clique scopes.

The nerve graph G_N = (C, E_N) has:
- Nodes: clique indices
- Edges: pairs of cliques sharing at least one free variable
- Edge labels: interface variables I_ab = S_a ∩ S_b, weight |I_ab|
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import networkx as nx


def build_nerve_graph(scopes: Sequence[Tuple[int, ...]]) -> nx.Graph:
    """
    Build the nerve graph of a list of clique scopes.

    Args:
        scopes: Scope (tuple of variable ids) of each clique, indexed by clique

    Returns:
        NetworkX graph with:
        - Nodes: clique indices 0..len(scopes)-1
        - Edges: pairs with non-empty intersection
        - Edge attrs: interface (sorted tuple of variable ids), weight (interface size)
    """
    g = nx.Graph()
    g.add_nodes_from(range(len(scopes)))

    var_to_cliques: Dict[int, List[int]] = {}
    for c, scope in enumerate(scopes):
        for v in scope:
            var_to_cliques.setdefault(v, []).append(c)

    seen = set()
    for v, cs in var_to_cliques.items():
        for i in range(len(cs)):
            for j in range(i + 1, len(cs)):
                a, b = cs[i], cs[j]
                if (a, b) in seen:
                    continue
                seen.add((a, b))
                inter = tuple(sorted(set(scopes[a]).intersection(scopes[b])))
                # Weighting by interface size makes the maximum spanning tree a
                # junction tree whenever one exists.
                g.add_edge(a, b, interface=inter, weight=len(inter))

    return g


def interface(nerve: nx.Graph, a: int, b: int) -> Tuple[int, ...]:
    """Get the interface between two cliques, () if they are not adjacent."""
    data = nerve.get_edge_data(a, b)
    if data is None:
        return ()
    return data["interface"]
