"""
loglinear/algebra/semiring.py

Log-space semiring runtimes for exact inference over dense tables.

Both runtimes operate on log potentials, so the semiring product is
elementwise addition in every case. They differ only in ⊕:

- LOGSUM: ⊕ = log-sum-exp   (sum-product: marginals, partition function)
- LOGMAX: ⊕ = max           (max-product: MAP decoding)

The clique tree traversal is written once against SemiringRuntime and is
parameterized by one of these two.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp


def _axis_tuple(axis) -> Optional[Tuple[int, ...]]:
    if axis is None:
        return None
    if isinstance(axis, (int, np.integer)):
        return (int(axis),)
    return tuple(axis)


def normalize_log(x: np.ndarray) -> np.ndarray:
    """
    Turn a 1-D array of log potentials into a linear-space distribution.

    If the potentials sum to zero (all -inf) or the sum is not finite, the
    result is uniform over the entries.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    z = logsumexp(x)
    if not np.isfinite(z):
        return np.full(x.shape, 1.0 / x.size)
    return np.exp(x - z)


@dataclass(frozen=True)
class SemiringRuntime:
    """
    Numpy-backed log-space semiring runtime.

    Attributes:
        name: Identifier for the semiring type
        dtype: Numpy dtype for tensors
        mul: Elementwise ⊗ operation
        add_reduce: ⊕ reduction over axes
        one: Factory for multiplicative identity tensor
        zero: Factory for additive identity tensor
        normalize: Log array to a linear-space distribution, uniform when all zero
        arg_reduce: Optional arg-⊕ over the trailing axis (max-product only)
    """
    name: str
    dtype: np.dtype
    mul: Callable[[np.ndarray, np.ndarray], np.ndarray]
    add_reduce: Callable[[np.ndarray, Optional[Tuple[int, ...]]], np.ndarray]
    one: Callable[[Tuple[int, ...]], np.ndarray]
    zero: Callable[[Tuple[int, ...]], np.ndarray]
    normalize: Callable[[np.ndarray], np.ndarray]
    arg_reduce: Optional[Callable[[np.ndarray], np.ndarray]] = None

    def supports_argmax(self) -> bool:
        return self.arg_reduce is not None

    def accumulate_per_axis(self, x: np.ndarray) -> Sequence[np.ndarray]:
        """
        For every axis i, ⊕-reduce over all the other axes.

        Returns one 1-D log array per axis, in axis order.
        """
        out = []
        for i in range(x.ndim):
            others = tuple(j for j in range(x.ndim) if j != i)
            if others:
                out.append(np.asarray(self.add_reduce(x, others)))
            else:
                out.append(np.asarray(x))
        return out


def log_sum_semiring(dtype: type = np.float64) -> SemiringRuntime:
    """Create a sum-product runtime over log potentials."""
    dt = np.dtype(dtype)

    def _add_reduce(x: np.ndarray, axis: Optional[Tuple[int, ...]]) -> np.ndarray:
        ax = _axis_tuple(axis)
        if ax is not None and not ax:
            return x
        return logsumexp(x, axis=ax)

    return SemiringRuntime(
        name="LOGSUM",
        dtype=dt,
        mul=np.add,  # log(a*b) = log(a) + log(b)
        add_reduce=_add_reduce,
        one=lambda shape: np.zeros(shape, dtype=dt),  # log(1) = 0
        zero=lambda shape: np.full(shape, -np.inf, dtype=dt),  # log(0) = -inf
        normalize=normalize_log,
        arg_reduce=None,
    )


def log_max_semiring(dtype: type = np.float64) -> SemiringRuntime:
    """Create a max-product runtime over log potentials."""
    dt = np.dtype(dtype)

    def _add_reduce(x: np.ndarray, axis: Optional[Tuple[int, ...]]) -> np.ndarray:
        ax = _axis_tuple(axis)
        if ax is not None and not ax:
            return x
        return np.max(x, axis=ax)

    return SemiringRuntime(
        name="LOGMAX",
        dtype=dt,
        mul=np.add,
        add_reduce=_add_reduce,
        one=lambda shape: np.zeros(shape, dtype=dt),
        zero=lambda shape: np.full(shape, -np.inf, dtype=dt),
        normalize=normalize_log,
        arg_reduce=lambda x: np.argmax(x, axis=-1),
    )
