"""
Tests for TableFactor operations.
"""

import itertools

import numpy as np
import pytest

from loglinear.algebra.semiring import log_max_semiring, log_sum_semiring
from loglinear.algebra.table_factor import TableFactor
from loglinear.core.errors import InvalidVariableError
from loglinear.model.graphical_model import GraphicalModel


def random_factor(rng, neighbors, dims):
    return TableFactor.from_values(neighbors, rng.uniform(0.1, 2.0, size=dims))


class TestConstruction:
    def test_from_values(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        assert tf.neighbor_indices == (0, 1)
        assert tf.dimensions == (2, 2)
        assert tf.get_assignment_value((1, 0)) == pytest.approx(3.0)

    def test_zero_potential_is_neg_inf(self):
        tf = TableFactor.from_values((0,), np.array([0.0, 1.0]))

        assert np.isneginf(tf.log_values[0])
        assert tf.get_assignment_value((0,)) == 0.0

    def test_zeros(self):
        tf = TableFactor.zeros((3, 5), (2, 3))

        assert tf.dimensions == (2, 3)
        assert tf.value_sum() == 0.0

    def test_rank_mismatch_raises(self):
        with pytest.raises(ValueError):
            TableFactor((0,), np.zeros((2, 2)))

    def test_duplicate_neighbors_raise(self):
        with pytest.raises(ValueError):
            TableFactor((0, 0), np.zeros((2, 2)))

    def test_negative_potential_raises(self):
        with pytest.raises(ValueError):
            TableFactor.from_values((0,), np.array([-1.0, 1.0]))

    def test_nan_or_posinf_log_values_raise(self):
        with pytest.raises(ValueError):
            TableFactor((0,), np.array([np.nan, 0.0]))
        with pytest.raises(ValueError):
            TableFactor((0,), np.array([np.inf, 0.0]))

    def test_from_factor_rejects_non_finite_potential(self):
        model = GraphicalModel()
        f = model.add_factor([0], [3], lambda a: np.array([float(a[0])]))

        with pytest.raises(ValueError):
            TableFactor.from_factor(f, np.array([1.0]), potential=lambda x, w: np.inf if x[0] == 2 else 1.0)
        with pytest.raises(ValueError):
            TableFactor.from_factor(f, np.array([np.nan]))

    def test_immutable(self):
        tf = TableFactor.from_values((0,), np.array([1.0, 2.0]))

        with pytest.raises(ValueError):
            tf.log_values[0] = 5.0

    def test_from_factor_is_exp_dot(self):
        model = GraphicalModel()
        f = model.add_factor([0, 1], [2, 3], lambda a: np.array([a[0], a[1], 1.0]))
        w = np.array([0.5, -0.25, 0.1])

        tf = TableFactor.from_factor(f, w)

        for a, b in itertools.product(range(2), range(3)):
            expected = np.exp(0.5 * a - 0.25 * b + 0.1)
            assert tf.get_assignment_value((a, b)) == pytest.approx(expected)

    def test_from_factor_custom_potential(self):
        model = GraphicalModel()
        f = model.add_factor([0], [3], lambda a: np.array([float(a[0])]))

        tf = TableFactor.from_factor(f, np.array([1.0]), potential=lambda x, w: x[0] * w[0])

        np.testing.assert_allclose(tf.values, [0.0, 1.0, 2.0])


class TestObserve:
    def test_scenario_a(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        marginals = tf.get_summed_marginals()
        np.testing.assert_allclose(marginals[0], [0.3, 0.7])
        np.testing.assert_allclose(marginals[1], [0.4, 0.6])

        observed = tf.observe(0, 1)
        assert observed.neighbor_indices == (1,)
        np.testing.assert_allclose(observed.values, [3.0, 4.0])
        assert observed.value_sum() == pytest.approx(7.0)

    def test_observe_last_neighbor(self):
        tf = TableFactor.from_values((4,), np.array([2.0, 5.0]))

        observed = tf.observe(4, 1)

        assert observed.neighbor_indices == ()
        assert observed.dimensions == ()
        assert observed.value_sum() == pytest.approx(5.0)

    def test_observe_unknown_variable_raises(self):
        tf = TableFactor.from_values((0, 1), np.ones((2, 2)))

        with pytest.raises(InvalidVariableError):
            tf.observe(7, 0)

    def test_observe_out_of_range_raises(self):
        tf = TableFactor.from_values((0, 1), np.ones((2, 2)))

        with pytest.raises(InvalidVariableError):
            tf.observe(1, 2)

    def test_observed_constructor_matches_any_observe_order(self):
        rng = np.random.default_rng(7)
        model = GraphicalModel()
        dims = [2, 3, 2, 3]
        table = rng.normal(size=tuple(dims) + (2,))
        f = model.add_factor([4, 1, 6, 2], dims, lambda a: table[a])
        w = np.array([0.7, -1.3])
        full = TableFactor.from_factor(f, w)

        for mask in itertools.product([False, True], repeat=4):
            observations = [
                int(rng.integers(d)) if m else -1 for d, m in zip(dims, mask)
            ]
            aligned = TableFactor.from_factor(f, w, observations)
            observed_pos = [i for i, o in enumerate(observations) if o != -1]
            for order in itertools.permutations(observed_pos):
                individually = full
                for i in order:
                    individually = individually.observe(f.neighbor_indices[i], observations[i])
                assert individually.neighbor_indices == aligned.neighbor_indices
                np.testing.assert_allclose(individually.values, aligned.values)


class TestMultiply:
    def test_shared_variable(self):
        f = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))
        g = TableFactor.from_values((1,), np.array([10.0, 100.0]))

        h = f.multiply(g)

        assert h.neighbor_indices == (0, 1)
        np.testing.assert_allclose(h.values, [[10.0, 200.0], [30.0, 400.0]])

    def test_union_never_duplicates(self):
        rng = np.random.default_rng(0)
        f = random_factor(rng, (2, 0, 5), (2, 3, 2))
        g = random_factor(rng, (5, 7, 0), (2, 2, 3))

        h = f.multiply(g)

        assert h.neighbor_indices == (2, 0, 5, 7)
        assert h.dimensions == (2, 3, 2, 2)
        for a in h.iter_assignments():
            assignment = dict(zip(h.neighbor_indices, a))
            expected = (
                f.get_assignment_value([assignment[v] for v in f.neighbor_indices])
                * g.get_assignment_value([assignment[v] for v in g.neighbor_indices])
            )
            assert h.get_assignment_value(a) == pytest.approx(expected)

    def test_disjoint_is_outer_product(self):
        f = TableFactor.from_values((0,), np.array([2.0, 3.0]))
        g = TableFactor.from_values((1,), np.array([4.0, 5.0]))

        h = f.multiply(g)

        np.testing.assert_allclose(h.values, np.outer([2.0, 3.0], [4.0, 5.0]))

    def test_zero_neighbor_factor_scales(self):
        f = TableFactor.from_values((0,), np.array([2.0, 3.0]))
        scalar = TableFactor.from_values((), np.array(4.0))

        np.testing.assert_allclose(f.multiply(scalar).values, [8.0, 12.0])
        np.testing.assert_allclose(scalar.multiply(f).values, [8.0, 12.0])

    def test_cardinality_conflict_raises(self):
        f = TableFactor.from_values((0,), np.ones(2))
        g = TableFactor.from_values((0,), np.ones(3))

        with pytest.raises(ValueError):
            f.multiply(g)


class TestMarginalize:
    def test_sum_out(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        a = tf.sum_out(1)
        b = tf.sum_out(0)

        assert a.neighbor_indices == (0,)
        np.testing.assert_allclose(a.values, [3.0, 7.0])
        np.testing.assert_allclose(b.values, [4.0, 6.0])

    def test_max_out(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        np.testing.assert_allclose(tf.max_out(1).values, [2.0, 4.0])
        np.testing.assert_allclose(tf.max_out(0).values, [3.0, 4.0])

    def test_sum_out_three_way(self):
        rng = np.random.default_rng(3)
        values = rng.uniform(0.0, 1.0, size=(2, 3, 4))
        tf = TableFactor.from_values((9, 4, 1), values)

        out = tf.sum_out(4)

        assert out.neighbor_indices == (9, 1)
        assert out.dimensions == (2, 4)
        np.testing.assert_allclose(out.values, values.sum(axis=1))

    def test_sum_out_with_zeros(self):
        tf = TableFactor.from_values((0, 1), np.array([[0.0, 0.0], [1.0, 0.0]]))

        np.testing.assert_allclose(tf.sum_out(1).values, [0.0, 1.0])

    def test_last_neighbor_raises(self):
        tf = TableFactor.from_values((0,), np.ones(2))

        with pytest.raises(InvalidVariableError):
            tf.sum_out(0)
        with pytest.raises(InvalidVariableError):
            tf.max_out(0)

    def test_unknown_variable_raises(self):
        tf = TableFactor.from_values((0, 1), np.ones((2, 2)))

        with pytest.raises(InvalidVariableError):
            tf.sum_out(3)

    def test_marginalize_to_reorders(self):
        values = np.arange(1.0, 13.0).reshape(2, 3, 2)
        tf = TableFactor.from_values((0, 1, 2), values)

        out = tf.marginalize_to((2, 0), log_sum_semiring())

        assert out.neighbor_indices == (2, 0)
        np.testing.assert_allclose(out.values, values.sum(axis=1).T)

    def test_marginalize_to_nothing(self):
        values = np.arange(1.0, 7.0).reshape(2, 3)
        tf = TableFactor.from_values((0, 1), values)

        assert tf.marginalize_to((), log_sum_semiring()).value_sum() == pytest.approx(21.0)
        assert tf.marginalize_to((), log_max_semiring()).value_sum() == pytest.approx(6.0)


class TestSummaries:
    def test_summed_marginals_normalized(self):
        rng = np.random.default_rng(11)
        tf = random_factor(rng, (0, 1, 2), (3, 2, 3))

        for m in tf.get_summed_marginals():
            assert np.isclose(np.sum(m), 1.0, atol=1e-5)

    def test_maxed_marginals(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        marginals = tf.get_maxed_marginals()

        np.testing.assert_allclose(marginals[0], [2.0 / 6.0, 4.0 / 6.0])
        np.testing.assert_allclose(marginals[1], [3.0 / 7.0, 4.0 / 7.0])

    def test_all_zero_marginals_are_uniform(self):
        tf = TableFactor.zeros((0, 1), (2, 4))

        summed = tf.get_summed_marginals()
        maxed = tf.get_maxed_marginals()

        np.testing.assert_allclose(summed[0], [0.5, 0.5])
        np.testing.assert_allclose(summed[1], [0.25] * 4)
        np.testing.assert_allclose(maxed[1], [0.25] * 4)

    def test_value_sum(self):
        tf = TableFactor.from_values((0, 1), np.array([[1.0, 2.0], [3.0, 4.0]]))

        assert tf.value_sum() == pytest.approx(10.0)

    def test_extend_observed(self):
        inner = TableFactor.from_values((2,), np.array([0.25, 0.75]))

        out = inner.extend_observed((5, 2), (3, 2), {5: 1})

        assert out.neighbor_indices == (5, 2)
        np.testing.assert_allclose(out.values, [[0.0, 0.0], [0.25, 0.75], [0.0, 0.0]])

    def test_reorder(self):
        values = np.arange(6.0).reshape(2, 3)
        tf = TableFactor.from_values((0, 1), values)

        out = tf.reorder((1, 0))

        assert out.dimensions == (3, 2)
        np.testing.assert_allclose(out.values, values.T)
