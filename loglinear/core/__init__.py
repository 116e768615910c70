"""
Core module: error taxonomy.
"""

from loglinear.core.errors import (
    LogLinearError,
    ModelConstructionError,
    InvalidVariableError,
    StructuralAssumptionViolated,
)

__all__ = [
    "LogLinearError",
    "ModelConstructionError",
    "InvalidVariableError",
    "StructuralAssumptionViolated",
]
