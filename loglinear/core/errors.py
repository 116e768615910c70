"""
loglinear/core/errors.py

Error taxonomy for model construction and inference.

All errors are raised at the point of detection and propagate to the
caller unchanged; inference never retries or recovers from them.
"""

from __future__ import annotations


class LogLinearError(Exception):
    """Base class for every error raised by this package."""


class ModelConstructionError(LogLinearError, ValueError):
    """A factor conflicts with the model it is being added to (or removed from)."""


class InvalidVariableError(LogLinearError, KeyError):
    """A variable reference is unknown, out of scope, or has an out-of-range value."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class StructuralAssumptionViolated(LogLinearError, RuntimeError):
    """
    The cliques do not satisfy the running-intersection property.

    Only raised when the structure check is explicitly requested.
    """
