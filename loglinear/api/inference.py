"""
loglinear/api/inference.py

One-call helpers around CliqueTree.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from loglinear.algebra.table_factor import Potential
from loglinear.inference.clique_tree import CliqueTree, MarginalResult
from loglinear.model.graphical_model import GraphicalModel


def compute_marginals(
    model: GraphicalModel,
    weights: np.ndarray,
    *,
    potential: Optional[Potential] = None,
) -> MarginalResult:
    """
    Compute marginals, joint marginals and the partition function.

    Args:
        model: Graphical model, with observations in its variable metadata
        weights: Weight vector dotted with every feature vector
        potential: Optional (features, weights) -> potential override

    Returns:
        MarginalResult for the model's current state

    Example:
        >>> model = GraphicalModel()
        >>> f = model.add_factor([0, 1], [2, 2], lambda a: np.array([float(a[0] == a[1])]))
        >>> result = compute_marginals(model, np.array([1.0]))
        >>> result.marginals[0]
        array([0.5, 0.5])
    """
    return CliqueTree(model, weights, potential=potential).calculate_marginals()


def compute_partition_function(
    model: GraphicalModel,
    weights: np.ndarray,
    *,
    potential: Optional[Potential] = None,
) -> float:
    """Partition function Z of the model under the given weights."""
    return compute_marginals(model, weights, potential=potential).partition_function


def compute_map(
    model: GraphicalModel,
    weights: np.ndarray,
    *,
    potential: Optional[Potential] = None,
) -> List[int]:
    """MAP assignment, indexed by variable id."""
    return CliqueTree(model, weights, potential=potential).calculate_map()
