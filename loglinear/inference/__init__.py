"""
Inference module: clique tree message passing.
"""

from loglinear.inference.clique_tree import CliqueTree, MarginalResult

__all__ = [
    "CliqueTree",
    "MarginalResult",
]
