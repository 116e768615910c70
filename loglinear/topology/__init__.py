"""
Topology module: nerve graph and rooted clique forests.
"""

from loglinear.topology.nerve import build_nerve_graph, interface
from loglinear.topology.backbone import (
    CliqueForest,
    build_clique_forest,
    check_running_intersection,
    choose_backbone_forest,
    root_forest,
)

__all__ = [
    "build_nerve_graph",
    "interface",
    "CliqueForest",
    "build_clique_forest",
    "check_running_intersection",
    "choose_backbone_forest",
    "root_forest",
]
