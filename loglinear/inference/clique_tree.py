"""
loglinear/inference/clique_tree.py

Exact inference on tree-structured log-linear models by clique tree
message passing.

Every call re-derives everything from the model's live state:

1. Materialize one clique table per factor, with clamped neighbors
   observed away. Fully observed factors become constants.
2. Build the nerve over free variables and take a maximum spanning
   forest, rooted per component.
3. Collect pass (leaves to root), then distribute pass (root to leaves),
   both parameterized by a semiring runtime: LOGSUM for marginals and the
   partition function, LOGMAX (with back-pointers) for MAP.

Factors are assumed to satisfy the running-intersection property; no
triangulation is performed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from loglinear.algebra.semiring import SemiringRuntime, log_max_semiring, log_sum_semiring
from loglinear.algebra.table_factor import Potential, TableFactor
from loglinear.core.errors import InvalidVariableError
from loglinear.model.graphical_model import VARIABLE_OBSERVED_VALUE, Factor, GraphicalModel
from loglinear.topology.backbone import CliqueForest, build_clique_forest, check_running_intersection
from loglinear.topology.nerve import build_nerve_graph

logger = logging.getLogger(__name__)

_SUM = log_sum_semiring()
_MAX = log_max_semiring()


@dataclass
class MarginalResult:
    """
    Result of marginal inference.

    Attributes:
        marginals: Distribution per variable id, None for ids no factor references
        partition_function: Sum of the joint potential over free assignments
        joint_marginals: Per-factor joint distribution, keyed by factor identity,
            in the factor's original neighbor order
        log_partition_function: Natural log of partition_function
    """
    marginals: List[Optional[np.ndarray]]
    partition_function: float
    joint_marginals: Dict[Factor, TableFactor] = field(default_factory=dict)
    log_partition_function: float = 0.0


@dataclass
class _Snapshot:
    """State of the model at call time, with clique tables materialized."""
    sizes: Dict[int, int]
    observations: Dict[int, int]
    max_var: int
    cliques: List[TableFactor]
    clique_factors: List[Factor]
    constant_factors: List[Factor]
    log_constant: float
    impossible: bool


class CliqueTree:
    """
    Exact marginal and MAP inference for a model and a weight vector.

    The tree holds references only: the model may change between calls and
    each call reflects its current factors and observations. The weights
    are copied on construction.
    """

    def __init__(
        self,
        model: GraphicalModel,
        weights: np.ndarray,
        *,
        potential: Optional[Potential] = None,
        check_structure: bool = False,
    ):
        self.model = model
        self.weights = np.array(weights, dtype=np.float64, copy=True)
        self.potential = potential
        self.check_structure = check_structure

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_marginals(self) -> MarginalResult:
        """Marginals, joint marginals per factor, and the partition function."""
        return self._marginals(include_joint=True)

    def calculate_marginals_just_singletons(self) -> List[Optional[np.ndarray]]:
        """Per-variable marginals only, skipping joint marginals and partition function."""
        return self._marginals(include_joint=False).marginals

    def calculate_map(self) -> List[int]:
        """
        Maximum-a-posteriori assignment, indexed by variable id.

        Clamped variables always report their observed value; ids no factor
        references report 0.
        """
        snap = self._snapshot()
        result = [0] * (snap.max_var + 1)
        if snap.impossible:
            logger.info("Impossible observation, MAP falls back to observed values only")
        elif snap.cliques:
            forest = self._forest(snap)
            up, back = self._collect(snap.cliques, forest, _MAX)
            for root in forest.roots:
                belief = self._belief(snap.cliques, forest, root, up)
                flat = int(np.argmax(belief.log_values))
                for v, x in zip(belief.neighbor_indices, np.unravel_index(flat, belief.dimensions)):
                    result[v] = int(x)
            for c in forest.preorder:
                if forest.parent[c] == -1 or back[c] is None:
                    continue
                sep, elim, pointers = back[c]
                best = int(pointers[tuple(result[v] for v in sep)])
                elim_dims = tuple(snap.sizes[v] for v in elim)
                for v, x in zip(elim, np.unravel_index(best, elim_dims)):
                    result[v] = int(x)

        # Observed variables that no clique touches still report their value
        for v, value in snap.observations.items():
            if v < len(result):
                result[v] = value
        return result

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def _snapshot(self) -> _Snapshot:
        factors = list(self.model.factors)
        sizes: Dict[int, int] = {}
        for f in factors:
            for n, d in zip(f.neighbor_indices, f.dimensions):
                sizes.setdefault(n, d)
        max_var = max(sizes) if sizes else -1

        observations: Dict[int, int] = {}
        for v in range(len(self.model.variable_metadata)):
            if VARIABLE_OBSERVED_VALUE not in self.model.variable_metadata[v]:
                continue
            value = self.model.observed_value(v)
            if value < 0:
                raise InvalidVariableError(f"Variable {v}: observed value {value} is negative")
            if v in sizes and value >= sizes[v]:
                raise InvalidVariableError(
                    f"Variable {v}: observed value {value} out of range for cardinality {sizes[v]}"
                )
            observations[v] = value

        cliques: List[TableFactor] = []
        clique_factors: List[Factor] = []
        constant_factors: List[Factor] = []
        log_constant = 0.0
        impossible = False
        for f in factors:
            obs = [observations.get(n, -1) for n in f.neighbor_indices]
            table = TableFactor.from_factor(f, self.weights, obs, self.potential)
            if all(o != -1 for o in obs):
                # Fully observed: a constant that only scales the partition function
                constant_factors.append(f)
                log_constant += float(table.log_values)
                if np.isneginf(log_constant):
                    impossible = True
                continue
            if np.all(np.isneginf(table.log_values)):
                impossible = True
            cliques.append(table)
            clique_factors.append(f)

        return _Snapshot(
            sizes=sizes,
            observations=observations,
            max_var=max_var,
            cliques=cliques,
            clique_factors=clique_factors,
            constant_factors=constant_factors,
            log_constant=log_constant,
            impossible=impossible,
        )

    def _forest(self, snap: _Snapshot) -> CliqueForest:
        scopes = [c.neighbor_indices for c in snap.cliques]
        forest = build_clique_forest(build_nerve_graph(scopes), scopes)
        if self.check_structure:
            check_running_intersection(forest, scopes)
        logger.debug(
            "Clique forest: %d cliques, %d components, roots=%s",
            len(scopes), len(forest.roots), forest.roots,
        )
        return forest

    # ------------------------------------------------------------------
    # Message passing
    # ------------------------------------------------------------------

    @staticmethod
    def _separator(cliques: List[TableFactor], c: int, p: int) -> Tuple[int, ...]:
        parent_scope = cliques[p].neighbor_indices
        return tuple(v for v in cliques[c].neighbor_indices if v in parent_scope)

    def _collect(
        self,
        cliques: List[TableFactor],
        forest: CliqueForest,
        sr: SemiringRuntime,
    ) -> Tuple[List[Optional[TableFactor]], List[Optional[Tuple[Tuple[int, ...], Tuple[int, ...], np.ndarray]]]]:
        """
        Leaves-to-root pass.

        up[c] is the message from c to its parent. When the semiring supports
        arg-max, back[c] holds (separator, eliminated, pointers): pointers is
        shaped by the separator and stores, for each separator assignment, the
        flat index of the best joint assignment to the eliminated variables.
        """
        n = len(cliques)
        up: List[Optional[TableFactor]] = [None] * n
        back: List[Optional[Tuple[Tuple[int, ...], Tuple[int, ...], np.ndarray]]] = [None] * n
        for c in forest.postorder:
            p = forest.parent[c]
            if p == -1:
                continue
            belief = cliques[c]
            for k in forest.children[c]:
                belief = belief.multiply(up[k])
            sep = self._separator(cliques, c, p)
            up[c] = belief.marginalize_to(sep, sr)
            if sr.supports_argmax():
                elim = tuple(v for v in belief.neighbor_indices if v not in sep)
                if elim:
                    table = belief.reorder(sep + elim).log_values
                    sep_dims = table.shape[:len(sep)]
                    flat = table.reshape(sep_dims + (-1,))
                    back[c] = (sep, elim, sr.arg_reduce(flat))
        return up, back

    def _distribute(
        self,
        cliques: List[TableFactor],
        forest: CliqueForest,
        up: List[Optional[TableFactor]],
        sr: SemiringRuntime,
    ) -> List[Optional[TableFactor]]:
        """Root-to-leaves pass; down[c] is the message from c's parent to c."""
        down: List[Optional[TableFactor]] = [None] * len(cliques)
        for c in forest.preorder:
            for k in forest.children[c]:
                message = cliques[c]
                if down[c] is not None:
                    message = message.multiply(down[c])
                for other in forest.children[c]:
                    if other != k:
                        message = message.multiply(up[other])
                down[k] = message.marginalize_to(self._separator(cliques, k, c), sr)
        return down

    @staticmethod
    def _belief(
        cliques: List[TableFactor],
        forest: CliqueForest,
        c: int,
        up: List[Optional[TableFactor]],
        down: Optional[List[Optional[TableFactor]]] = None,
    ) -> TableFactor:
        """Clique table times every incoming message, over the clique's own scope."""
        belief = cliques[c]
        for k in forest.children[c]:
            belief = belief.multiply(up[k])
        if down is not None and down[c] is not None:
            belief = belief.multiply(down[c])
        return belief

    # ------------------------------------------------------------------
    # Marginals
    # ------------------------------------------------------------------

    def _marginals(self, include_joint: bool) -> MarginalResult:
        snap = self._snapshot()
        marginals: List[Optional[np.ndarray]] = [None] * (snap.max_var + 1)
        for v, value in snap.observations.items():
            if v in snap.sizes:
                deterministic = np.zeros(snap.sizes[v])
                deterministic[value] = 1.0
                marginals[v] = deterministic

        beliefs: List[TableFactor] = []
        log_z = snap.log_constant
        impossible = snap.impossible
        if not impossible and snap.cliques:
            forest = self._forest(snap)
            up, _ = self._collect(snap.cliques, forest, _SUM)
            down = self._distribute(snap.cliques, forest, up, _SUM)
            beliefs = [self._belief(snap.cliques, forest, c, up, down) for c in range(len(snap.cliques))]
            component_log_z = [beliefs[root].log_value_sum() for root in forest.roots]
            if any(np.isneginf(z) for z in component_log_z):
                impossible = True
            else:
                log_z += float(np.sum(component_log_z))

        if impossible:
            logger.info("Impossible observation, returning uniform marginals for free variables")
            return self._impossible_result(snap, marginals, include_joint)

        for belief in beliefs:
            if all(marginals[v] is not None for v in belief.neighbor_indices):
                continue
            clique_marginals = belief.get_summed_marginals()
            for v, m in zip(belief.neighbor_indices, clique_marginals):
                if marginals[v] is None:
                    marginals[v] = m

        if not include_joint:
            return MarginalResult(marginals=marginals, partition_function=float(np.exp(log_z)),
                                  log_partition_function=log_z)

        joint: Dict[Factor, TableFactor] = {}
        for belief, f in zip(beliefs, snap.clique_factors):
            normalized = TableFactor(belief.neighbor_indices, belief.log_values - belief.log_value_sum())
            joint[f] = normalized.extend_observed(
                f.neighbor_indices, f.dimensions, self._factor_observations(f, snap),
            )
        for f in snap.constant_factors:
            joint[f] = TableFactor((), _SUM.one(())).extend_observed(
                f.neighbor_indices, f.dimensions, self._factor_observations(f, snap),
            )

        return MarginalResult(
            marginals=marginals,
            partition_function=float(np.exp(log_z)),
            joint_marginals=joint,
            log_partition_function=log_z,
        )

    @staticmethod
    def _factor_observations(f: Factor, snap: _Snapshot) -> Dict[int, int]:
        return {n: snap.observations[n] for n in f.neighbor_indices if n in snap.observations}

    @staticmethod
    def _impossible_result(
        snap: _Snapshot,
        marginals: List[Optional[np.ndarray]],
        include_joint: bool,
    ) -> MarginalResult:
        """Uniform free marginals, all-zero joint marginals, zero partition function."""
        for c in snap.cliques:
            for v, d in zip(c.neighbor_indices, c.dimensions):
                if marginals[v] is None:
                    marginals[v] = np.full(d, 1.0 / d)
        joint: Dict[Factor, TableFactor] = {}
        if include_joint:
            for f in snap.clique_factors + snap.constant_factors:
                joint[f] = TableFactor.zeros(f.neighbor_indices, f.dimensions)
        return MarginalResult(
            marginals=marginals,
            partition_function=0.0,
            joint_marginals=joint,
            log_partition_function=float("-inf"),
        )
