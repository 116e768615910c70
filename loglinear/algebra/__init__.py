"""
Algebra module: log-space semirings and dense factor tables.
"""

from loglinear.algebra.semiring import (
    SemiringRuntime,
    log_sum_semiring,
    log_max_semiring,
    normalize_log,
)
from loglinear.algebra.table_factor import TableFactor

__all__ = [
    "SemiringRuntime",
    "log_sum_semiring",
    "log_max_semiring",
    "normalize_log",
    "TableFactor",
]
