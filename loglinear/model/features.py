"""
loglinear/model/features.py

Per-assignment feature vectors for log-linear factors.

A FeatureTable maps every joint assignment of a factor's neighbors to a
feature vector. The featurizer is kept as a lazy closure: it may be
called any number of times and must return the same vector for the same
assignment. Individual assignments can be overridden in place, which
freezes ("cooks") a vector that would otherwise be recomputed.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

Assignment = Tuple[int, ...]
Featurizer = Callable[[Assignment], np.ndarray]


def dot(features: np.ndarray, weights: np.ndarray) -> float:
    """
    Dot product of a feature vector with a weight vector.

    Components missing from the shorter vector count as zero, so weights
    and features do not need to agree on length.
    """
    f = np.asarray(features, dtype=np.float64).ravel()
    w = np.asarray(weights, dtype=np.float64).ravel()
    n = min(f.size, w.size)
    if n == 0:
        return 0.0
    return float(np.dot(f[:n], w[:n]))


class FeatureTable:
    """
    Dense table of feature vectors, addressed by one coordinate per neighbor.

    Attributes:
        dimensions: Cardinality of each neighbor, in neighbor order
        featurizer: Callable mapping an assignment tuple to a feature vector
    """

    def __init__(self, dimensions: Sequence[int], featurizer: Optional[Featurizer] = None):
        self.dimensions: Tuple[int, ...] = tuple(int(d) for d in dimensions)
        self.featurizer = featurizer
        self._overrides: Dict[Assignment, np.ndarray] = {}

    def iter_assignments(self) -> Iterator[Assignment]:
        """All assignments in row-major order (last neighbor varies fastest)."""
        return iter(np.ndindex(*self.dimensions))

    def _key(self, assignment: Sequence[int]) -> Assignment:
        key = tuple(int(a) for a in assignment)
        if len(key) != len(self.dimensions):
            raise ValueError(
                f"Assignment {key} has {len(key)} entries, table has {len(self.dimensions)} dimensions"
            )
        for a, d in zip(key, self.dimensions):
            if a < 0 or a >= d:
                raise ValueError(f"Assignment {key} out of bounds for dimensions {self.dimensions}")
        return key

    def get_assignment_value(self, assignment: Sequence[int]) -> np.ndarray:
        key = self._key(assignment)
        if key in self._overrides:
            return self._overrides[key]
        if self.featurizer is None:
            return np.zeros(0, dtype=np.float64)
        return np.asarray(self.featurizer(key), dtype=np.float64)

    def set_assignment_value(self, assignment: Sequence[int], features: np.ndarray) -> None:
        self._overrides[self._key(assignment)] = np.asarray(features, dtype=np.float64)

    def cook(self) -> None:
        """Evaluate the featurizer once for every assignment and keep the results."""
        for assignment in self.iter_assignments():
            if assignment not in self._overrides:
                self._overrides[assignment] = self.get_assignment_value(assignment)

    def clone_table(self) -> "FeatureTable":
        clone = FeatureTable(self.dimensions, self.featurizer)
        clone._overrides = {k: v.copy() for k, v in self._overrides.items()}
        return clone

    def value_equals(self, other: "FeatureTable", tolerance: float) -> bool:
        if self.dimensions != other.dimensions:
            return False
        for assignment in self.iter_assignments():
            a = self.get_assignment_value(assignment)
            b = other.get_assignment_value(assignment)
            n = max(a.size, b.size)
            a = np.pad(a, (0, n - a.size))
            b = np.pad(b, (0, n - b.size))
            if not np.allclose(a, b, rtol=0.0, atol=tolerance):
                return False
        return True

    def __repr__(self) -> str:
        return f"FeatureTable(dimensions={self.dimensions})"
