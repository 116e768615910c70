"""
Model module: graphical model data structures and feature tables.
"""

from loglinear.model.features import FeatureTable, dot
from loglinear.model.graphical_model import Factor, GraphicalModel, VARIABLE_OBSERVED_VALUE

__all__ = [
    "FeatureTable",
    "dot",
    "Factor",
    "GraphicalModel",
    "VARIABLE_OBSERVED_VALUE",
]
