"""
API module: high-level inference helpers.
"""

from loglinear.api.inference import compute_map, compute_marginals, compute_partition_function

__all__ = ["compute_map", "compute_marginals", "compute_partition_function"]
