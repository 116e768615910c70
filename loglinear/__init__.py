"""
loglinear: exact inference for discrete log-linear graphical models

A dense-table factor algebra and a clique tree engine computing marginals,
joint marginals, the partition function and MAP assignments for
tree-structured models, honoring clamped variables.

Key components:
- core: error taxonomy
- algebra: log-space semirings and the TableFactor
- model: GraphicalModel, Factor and feature tables
- topology: nerve graph and rooted clique forests
- inference: CliqueTree message passing
- api: one-call inference helpers
"""

__version__ = "1.0.0"

from loglinear.core.errors import (
    LogLinearError,
    ModelConstructionError,
    InvalidVariableError,
    StructuralAssumptionViolated,
)
from loglinear.algebra.semiring import SemiringRuntime, log_sum_semiring, log_max_semiring
from loglinear.algebra.table_factor import TableFactor
from loglinear.model.features import FeatureTable, dot
from loglinear.model.graphical_model import Factor, GraphicalModel, VARIABLE_OBSERVED_VALUE
from loglinear.inference.clique_tree import CliqueTree, MarginalResult
from loglinear.api.inference import compute_map, compute_marginals, compute_partition_function

__all__ = [
    # Errors
    "LogLinearError",
    "ModelConstructionError",
    "InvalidVariableError",
    "StructuralAssumptionViolated",
    # Algebra
    "SemiringRuntime",
    "log_sum_semiring",
    "log_max_semiring",
    "TableFactor",
    # Model
    "FeatureTable",
    "dot",
    "Factor",
    "GraphicalModel",
    "VARIABLE_OBSERVED_VALUE",
    # Inference
    "CliqueTree",
    "MarginalResult",
    "compute_map",
    "compute_marginals",
    "compute_partition_function",
]
