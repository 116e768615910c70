"""
loglinear/algebra/table_factor.py

A TableFactor is a dense potential table over an ordered tuple of discrete
variables. It is the only data structure message passing operates on.

Potentials are stored in log space (zero potentials are -inf), so factor
product is addition and summation uses the log-sum-exp trick. Every
public accessor speaks linear space.

Key operations:
  - observe:   clamp one neighbor, dropping its axis
  - multiply:  pointwise product on the union of both scopes
  - sum_out:   eliminate a neighbor by summation
  - max_out:   eliminate a neighbor by maximization
  - get_summed_marginals / get_maxed_marginals: normalized per-neighbor marginals

Design constraints:
  - Immutable: every operation returns a new TableFactor.
  - Neighbor ordering is semantic: axes correspond 1-1 to neighbor_indices.
  - Neighbor ids are unique; multiply never duplicates a variable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp

from loglinear.algebra.semiring import (
    SemiringRuntime,
    log_max_semiring,
    log_sum_semiring,
)
from loglinear.core.errors import InvalidVariableError
from loglinear.model.features import dot

_SUM = log_sum_semiring()
_MAX = log_max_semiring()

Potential = Callable[[np.ndarray, np.ndarray], float]


def _log_potential(features: np.ndarray, weights: np.ndarray, potential: Optional[Potential]) -> float:
    if potential is None:
        log_value = dot(features, weights)
        if not np.isfinite(log_value):
            raise ValueError(f"Log potential features . weights must be finite, got {log_value}")
        return log_value
    value = float(potential(features, weights))
    if value < 0.0 or not np.isfinite(value):
        raise ValueError(f"Potential must be non-negative and finite, got {value}")
    if value == 0.0:
        return -np.inf
    return float(np.log(value))


@dataclass(frozen=True, eq=False)
class TableFactor:
    """
    A log-space potential table over an ordered neighbor tuple.

    Attributes:
        neighbor_indices: Ordered, unique variable ids (axis labels)
        log_values: ndarray of log potentials shaped by the neighbor
            cardinalities, in the same order
    """
    neighbor_indices: Tuple[int, ...]
    log_values: np.ndarray

    def __post_init__(self):
        neighbors = tuple(int(n) for n in self.neighbor_indices)
        data = np.array(self.log_values, dtype=np.float64)
        if len(neighbors) != data.ndim:
            raise ValueError(
                f"TableFactor rank mismatch: {len(neighbors)} neighbors "
                f"but table has {data.ndim} dimensions"
            )
        if len(set(neighbors)) != len(neighbors):
            raise ValueError(f"TableFactor neighbors have duplicates: {neighbors}")
        if np.any(np.isnan(data)) or np.any(np.isposinf(data)):
            raise ValueError("TableFactor log potentials must not be NaN or +inf")
        data.setflags(write=False)
        object.__setattr__(self, "neighbor_indices", neighbors)
        object.__setattr__(self, "log_values", data)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @staticmethod
    def zeros(neighbor_indices: Sequence[int], dimensions: Sequence[int]) -> "TableFactor":
        """A table with every potential equal to zero."""
        return TableFactor(tuple(neighbor_indices), _SUM.zero(tuple(int(d) for d in dimensions)))

    @staticmethod
    def from_values(neighbor_indices: Sequence[int], values: np.ndarray) -> "TableFactor":
        """Build from linear-space, non-negative potentials."""
        values = np.asarray(values, dtype=np.float64)
        if np.any(values < 0) or not np.all(np.isfinite(values)):
            raise ValueError("TableFactor potentials must be non-negative and finite")
        with np.errstate(divide="ignore"):
            return TableFactor(tuple(neighbor_indices), np.log(values))

    @staticmethod
    def from_factor(
        factor,
        weights: np.ndarray,
        observations: Optional[Sequence[int]] = None,
        potential: Optional[Potential] = None,
    ) -> "TableFactor":
        """
        Build the potential table of a model factor.

        Each cell is potential(features(assignment), weights), which by
        default is exp(features · weights).

        If observations is given it must align with the factor's neighbors;
        an entry of -1 marks a free neighbor and any other entry clamps that
        neighbor. Only free neighbors appear in the result, and features are
        evaluated only for assignments consistent with the clamps. The result
        equals building the full table and observing each clamped neighbor.
        """
        neighbors = tuple(factor.neighbor_indices)
        dims = tuple(factor.features_table.dimensions)
        if observations is None:
            observations = [-1] * len(neighbors)
        observations = [int(o) for o in observations]
        if len(observations) != len(neighbors):
            raise ValueError(
                f"Got {len(observations)} observations for a factor with {len(neighbors)} neighbors"
            )

        free_pos: List[int] = []
        full_assignment = [0] * len(neighbors)
        for i, (n, d, obs) in enumerate(zip(neighbors, dims, observations)):
            if obs == -1:
                free_pos.append(i)
            elif 0 <= obs < d:
                full_assignment[i] = obs
            else:
                raise InvalidVariableError(
                    f"Variable {n}: observed value {obs} out of range for cardinality {d}"
                )

        free_neighbors = tuple(neighbors[i] for i in free_pos)
        free_dims = tuple(dims[i] for i in free_pos)
        table = np.empty(free_dims, dtype=np.float64)
        for assn in np.ndindex(*free_dims):
            for j, i in enumerate(free_pos):
                full_assignment[i] = assn[j]
            features = factor.features_table.get_assignment_value(full_assignment)
            table[assn] = _log_potential(features, weights, potential)
        return TableFactor(free_neighbors, table)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def dimensions(self) -> Tuple[int, ...]:
        return tuple(self.log_values.shape)

    @property
    def values(self) -> np.ndarray:
        """Linear-space potentials."""
        return np.exp(self.log_values)

    def axis_of(self, variable: int) -> int:
        try:
            return self.neighbor_indices.index(variable)
        except ValueError:
            raise InvalidVariableError(
                f"Variable {variable} is not a neighbor of factor over {self.neighbor_indices}"
            ) from None

    def get_variable_size(self, variable: int) -> int:
        """Cardinality of a neighbor, or 0 if the variable is not a neighbor."""
        if variable in self.neighbor_indices:
            return self.log_values.shape[self.neighbor_indices.index(variable)]
        return 0

    def iter_assignments(self) -> Iterator[Tuple[int, ...]]:
        return iter(np.ndindex(*self.dimensions))

    def get_assignment_value(self, assignment: Sequence[int]) -> float:
        return float(np.exp(self.log_values[tuple(int(a) for a in assignment)]))

    def get_assignment_log_value(self, assignment: Sequence[int]) -> float:
        return float(self.log_values[tuple(int(a) for a in assignment)])

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def observe(self, variable: int, value: int) -> "TableFactor":
        """Clamp a neighbor to a value, returning a factor without that neighbor."""
        axis = self.axis_of(variable)
        size = self.log_values.shape[axis]
        if not 0 <= int(value) < size:
            raise InvalidVariableError(
                f"Variable {variable}: observed value {value} out of range for cardinality {size}"
            )
        neighbors = self.neighbor_indices[:axis] + self.neighbor_indices[axis + 1:]
        return TableFactor(neighbors, np.take(self.log_values, int(value), axis=axis))

    def _aligned_view(self, target: Tuple[int, ...]) -> np.ndarray:
        """
        Broadcastable view of the table aligned to target.

        Existing axes are permuted into target order; missing axes become
        singleton dimensions.
        """
        pos = {v: i for i, v in enumerate(self.neighbor_indices)}
        perm = [pos[v] for v in target if v in pos]
        data = np.transpose(self.log_values, axes=perm) if perm else self.log_values
        shape = []
        j = 0
        for v in target:
            if v in pos:
                shape.append(data.shape[j])
                j += 1
            else:
                shape.append(1)
        return data.reshape(tuple(shape))

    def multiply(self, other: "TableFactor") -> "TableFactor":
        """
        Factor product on the union of both scopes.

        Result neighbors are this factor's neighbors followed by the other
        factor's neighbors that this one lacks.
        """
        union = self.neighbor_indices + tuple(
            v for v in other.neighbor_indices if v not in self.neighbor_indices
        )
        for v in other.neighbor_indices:
            a = self.get_variable_size(v)
            b = other.get_variable_size(v)
            if a and a != b:
                raise ValueError(f"Variable {v} has cardinality {a} in one factor and {b} in the other")
        out = _SUM.mul(self._aligned_view(union), other._aligned_view(union))
        return TableFactor(union, out)

    def _eliminate(self, variable: int, semiring: SemiringRuntime) -> "TableFactor":
        axis = self.axis_of(variable)
        if len(self.neighbor_indices) <= 1:
            raise InvalidVariableError(
                f"Cannot eliminate variable {variable}: it is the last neighbor of the factor"
            )
        neighbors = self.neighbor_indices[:axis] + self.neighbor_indices[axis + 1:]
        return TableFactor(neighbors, semiring.add_reduce(self.log_values, (axis,)))

    def sum_out(self, variable: int) -> "TableFactor":
        """Marginalize out a neighbor by summation."""
        return self._eliminate(variable, _SUM)

    def max_out(self, variable: int) -> "TableFactor":
        """Marginalize out a neighbor by taking the max."""
        return self._eliminate(variable, _MAX)

    def marginalize_to(self, keep: Sequence[int], semiring: SemiringRuntime) -> "TableFactor":
        """
        ⊕-eliminate every neighbor not in keep.

        The result's axes follow keep order; every entry of keep must be a
        neighbor. Unlike sum_out/max_out this may eliminate every axis,
        producing a zero-neighbor table.
        """
        keep = tuple(keep)
        kept_axes = [self.axis_of(v) for v in keep]
        elim_axes = tuple(i for i in range(len(self.neighbor_indices)) if i not in kept_axes)
        data = self.log_values
        if elim_axes:
            data = semiring.add_reduce(data, elim_axes)
        remaining = [v for v in self.neighbor_indices if v in keep]
        pos = {v: i for i, v in enumerate(remaining)}
        data = np.transpose(np.asarray(data), axes=[pos[v] for v in keep]) if keep else np.asarray(data)
        return TableFactor(keep, data)

    def reorder(self, neighbor_indices: Sequence[int]) -> "TableFactor":
        """The same factor with its axes in the given neighbor order."""
        target = tuple(neighbor_indices)
        if sorted(target) != sorted(self.neighbor_indices):
            raise InvalidVariableError(
                f"Cannot reorder factor over {self.neighbor_indices} to {target}"
            )
        if target == self.neighbor_indices:
            return self
        return TableFactor(target, np.transpose(self.log_values, axes=[self.axis_of(v) for v in target]))

    def extend_observed(
        self,
        neighbor_indices: Sequence[int],
        dimensions: Sequence[int],
        observations: Dict[int, int],
    ) -> "TableFactor":
        """
        Re-insert clamped neighbors as one-hot dimensions.

        Returns a table over neighbor_indices where every cell that agrees
        with the observations carries this factor's value and every other
        cell is zero. This factor's neighbors must be exactly the unobserved
        entries of neighbor_indices.
        """
        neighbor_indices = tuple(neighbor_indices)
        free = tuple(v for v in neighbor_indices if v not in observations)
        inner = self.reorder(free)
        out = _SUM.zero(tuple(int(d) for d in dimensions))
        index = tuple(
            int(observations[v]) if v in observations else slice(None) for v in neighbor_indices
        )
        out[index] = inner.log_values
        return TableFactor(neighbor_indices, out)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def get_summed_marginals(self) -> List[np.ndarray]:
        """
        Per-neighbor marginals, summing over every other neighbor.

        Each array is normalized to sum to one; an all-zero accumulation
        becomes uniform.
        """
        return [_SUM.normalize(x) for x in _SUM.accumulate_per_axis(self.log_values)]

    def get_maxed_marginals(self) -> List[np.ndarray]:
        """
        Per-neighbor max-marginals, maximizing over every other neighbor.

        Normalized exactly like get_summed_marginals, so the result is a
        pseudo-distribution rather than raw max potentials.
        """
        return [_MAX.normalize(x) for x in _MAX.accumulate_per_axis(self.log_values)]

    def log_value_sum(self) -> float:
        return float(logsumexp(self.log_values.ravel()))

    def value_sum(self) -> float:
        """Sum of every cell: the factor's own unnormalized partition function."""
        return float(np.exp(self.log_value_sum()))

    def __repr__(self) -> str:
        return f"TableFactor(neighbors={self.neighbor_indices}, dimensions={self.dimensions})"
