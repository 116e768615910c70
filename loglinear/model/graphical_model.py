"""
loglinear/model/graphical_model.py

Mutable data model for discrete log-linear graphical models.

Variables are implicit: they are small non-negative integer ids that come
into existence when a factor references them, and the first factor to
reference an id fixes its cardinality. Factors are kept in insertion
order but carry no semantic ordering.

Metadata lives at three levels (model, variable, factor) as plain
string-keyed dicts handed out by reference. Observations use the same
channel: setting VARIABLE_OBSERVED_VALUE in a variable's metadata clamps
that variable for every later inference call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from loglinear.core.errors import InvalidVariableError, ModelConstructionError
from loglinear.model.features import FeatureTable, Featurizer

VARIABLE_OBSERVED_VALUE = "inference.CliqueTree.VARIABLE_OBSERVED_VALUE"


@dataclass(eq=False)
class Factor:
    """
    A single factor in a graphical model.

    Equality and hashing are by identity, so structurally identical
    factors stay distinguishable as dict keys.

    Attributes:
        neighbor_indices: Ordered, duplicate-free variable ids
        features_table: Feature vector per assignment of the neighbors
        metadata: Free-form string metadata
    """
    neighbor_indices: Tuple[int, ...]
    features_table: FeatureTable
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def dimensions(self) -> Tuple[int, ...]:
        return self.features_table.dimensions

    def get_metadata_by_reference(self) -> Dict[str, str]:
        return self.metadata

    def value_equals(self, other: "Factor", tolerance: float) -> bool:
        """Deep comparison of neighbors, metadata and feature vectors."""
        return (
            self.neighbor_indices == other.neighbor_indices
            and self.metadata == other.metadata
            and self.features_table.value_equals(other.features_table, tolerance)
        )

    def clone_factor(self) -> "Factor":
        return Factor(
            neighbor_indices=tuple(self.neighbor_indices),
            features_table=self.features_table.clone_table(),
            metadata=dict(self.metadata),
        )

    def __repr__(self) -> str:
        return f"Factor(neighbors={self.neighbor_indices}, dimensions={self.dimensions})"


class GraphicalModel:
    """
    Registry of factors plus model/variable/factor metadata.

    Maintains:
    - Factors, in insertion order
    - Model-level metadata
    - Variable-level metadata, indexed by variable id
    """

    def __init__(self):
        self.model_metadata: Dict[str, str] = {}
        self.variable_metadata: List[Dict[str, str]] = []
        self.factors: List[Factor] = []

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    def add_factor(
        self,
        neighbor_indices: Sequence[int],
        neighbor_dimensions: Sequence[int],
        featurizer: Optional[Featurizer] = None,
    ) -> Factor:
        """
        Add a factor over the given neighbors.

        The featurizer maps an assignment (a tuple in neighbor order) to a
        feature vector. It is stored lazily, may be called many times, and
        must be free of side effects.

        Raises:
            ModelConstructionError: if the neighbors are malformed or a
                cardinality disagrees with another factor. The model is
                left unchanged.
        """
        return self.add_factor_table(FeatureTable(neighbor_dimensions, featurizer), neighbor_indices)

    def add_factor_table(self, features_table: FeatureTable, neighbor_indices: Sequence[int]) -> Factor:
        """Add a factor driven by an existing feature table."""
        neighbors = tuple(int(n) for n in neighbor_indices)
        dims = features_table.dimensions
        if len(dims) != len(neighbors):
            raise ModelConstructionError(
                f"Factor has {len(neighbors)} neighbors but {len(dims)} dimensions"
            )
        if len(set(neighbors)) != len(neighbors):
            raise ModelConstructionError(f"Factor neighbors contain duplicates: {neighbors}")
        for n, d in zip(neighbors, dims):
            if n < 0:
                raise ModelConstructionError(f"Variable ids must be non-negative, got {n}")
            if d <= 0:
                raise ModelConstructionError(f"Variable {n}: cardinality must be positive, got {d}")

        known = self._declared_sizes()
        for n, d in zip(neighbors, dims):
            if n in known and known[n] != d:
                raise ModelConstructionError(
                    f"Variable {n}: dimension mismatch, declared {known[n]} but factor uses {d}"
                )

        factor = Factor(neighbors, features_table)
        self.factors.append(factor)
        return factor

    def remove_factor(self, factor: Factor) -> None:
        """Remove a factor by identity. Variable metadata is left untouched."""
        for i, f in enumerate(self.factors):
            if f is factor:
                del self.factors[i]
                return
        raise ModelConstructionError(f"{factor!r} is not part of this model")

    def _declared_sizes(self) -> Dict[int, int]:
        sizes: Dict[int, int] = {}
        for f in self.factors:
            for n, d in zip(f.neighbor_indices, f.dimensions):
                sizes.setdefault(n, d)
        return sizes

    def get_variable_sizes(self) -> List[int]:
        """Cardinality per variable id; -1 for ids no factor references."""
        sizes = self._declared_sizes()
        if not sizes:
            return []
        out = [-1] * (max(sizes) + 1)
        for n, d in sizes.items():
            out[n] = d
        return out

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_model_metadata_by_reference(self) -> Dict[str, str]:
        return self.model_metadata

    def get_variable_metadata_by_reference(self, variable_index: int) -> Dict[str, str]:
        """Metadata for a variable, created empty on first access."""
        if variable_index < 0:
            raise InvalidVariableError(f"Variable ids must be non-negative, got {variable_index}")
        while variable_index >= len(self.variable_metadata):
            self.variable_metadata.append({})
        return self.variable_metadata[variable_index]

    def observe(self, variable_index: int, value: int) -> None:
        """Clamp a variable; shorthand for writing its observed-value metadata."""
        self.get_variable_metadata_by_reference(variable_index)[VARIABLE_OBSERVED_VALUE] = str(int(value))

    def unobserve(self, variable_index: int) -> None:
        self.get_variable_metadata_by_reference(variable_index).pop(VARIABLE_OBSERVED_VALUE, None)

    def observed_value(self, variable_index: int) -> Optional[int]:
        """The clamped value of a variable, or None if it is free."""
        if variable_index < 0:
            raise InvalidVariableError(f"Variable ids must be non-negative, got {variable_index}")
        if variable_index >= len(self.variable_metadata):
            return None
        raw = self.variable_metadata[variable_index].get(VARIABLE_OBSERVED_VALUE)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise InvalidVariableError(
                f"Variable {variable_index}: observed value {raw!r} is not an integer"
            ) from None

    # ------------------------------------------------------------------
    # Copies and comparison
    # ------------------------------------------------------------------

    def clone_model(self) -> "GraphicalModel":
        clone = GraphicalModel()
        clone.model_metadata.update(self.model_metadata)
        for i, md in enumerate(self.variable_metadata):
            clone.get_variable_metadata_by_reference(i).update(md)
        for f in self.factors:
            clone.factors.append(f.clone_factor())
        return clone

    def value_equals(self, other: "GraphicalModel", tolerance: float) -> bool:
        """Deep comparison, matching factors irrespective of order."""
        if self.model_metadata != other.model_metadata:
            return False
        n = max(len(self.variable_metadata), len(other.variable_metadata))
        for i in range(n):
            a = self.variable_metadata[i] if i < len(self.variable_metadata) else {}
            b = other.variable_metadata[i] if i < len(other.variable_metadata) else {}
            if a != b:
                return False
        if len(self.factors) != len(other.factors):
            return False
        remaining = list(self.factors)
        for other_factor in other.factors:
            match = None
            for i, f in enumerate(remaining):
                if f.value_equals(other_factor, tolerance):
                    match = i
                    break
            if match is None:
                return False
            del remaining[match]
        return not remaining

    def __repr__(self) -> str:
        return f"GraphicalModel(factors={len(self.factors)}, variables={len(self.get_variable_sizes())})"
