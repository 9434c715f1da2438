"""
test_numerics.py
----------------

Tests for the numerically stable primitives in tierbayes.utils.
"""

import math

import jax.numpy as jnp
import jax.random as jr
import pytest

from tierbayes.utils import (
    advance,
    clip_gradient,
    gaussian_kl_standard,
    log_beta,
    log_gamma,
    log_sum_exp,
    normal_log_density,
    safe_log,
    seed,
    split,
    two_sided_z,
)


class TestLogSumExp:
    def test_large_values_do_not_overflow(self):
        """Inputs near 1000 are handled without overflow."""
        assert float(log_sum_exp([1000.0, 1001.0, 999.0])) == pytest.approx(1001.408, abs=1e-2)

    def test_empty_is_negative_infinity(self):
        assert float(log_sum_exp([])) == -math.inf

    def test_all_negative_infinity(self):
        """No nan from (-inf) - (-inf)."""
        assert float(log_sum_exp([-jnp.inf, -jnp.inf])) == -math.inf

    def test_positive_infinity_propagates(self):
        assert float(log_sum_exp([0.0, jnp.inf])) == math.inf

    def test_axis_reduction(self):
        values = jnp.log(jnp.array([[1.0, 3.0], [2.0, 2.0]]))
        out = log_sum_exp(values, axis=1)
        assert out.shape == (2,)
        assert jnp.allclose(out, jnp.log(jnp.array([4.0, 4.0])))

    def test_matches_naive_for_small_values(self):
        values = jnp.array([0.1, -0.3, 1.2])
        assert float(log_sum_exp(values)) == pytest.approx(float(jnp.log(jnp.sum(jnp.exp(values)))))


class TestClipGradient:
    def test_rescales_to_max_norm(self):
        """A norm-50 gradient clipped at 10 keeps its direction."""
        clipped = clip_gradient(jnp.array([30.0, 40.0]), max_norm=10.0)
        assert jnp.allclose(clipped, jnp.array([6.0, 8.0]))
        assert float(jnp.linalg.norm(clipped)) == pytest.approx(10.0)

    def test_small_gradient_unchanged(self):
        grad = jnp.array([0.3, -0.4])
        assert jnp.array_equal(clip_gradient(grad, max_norm=10.0), grad)

    def test_zero_gradient(self):
        assert jnp.array_equal(clip_gradient(jnp.zeros(3)), jnp.zeros(3))

    @pytest.mark.parametrize("grad", [None, []])
    def test_missing_gradient_is_empty(self, grad):
        assert clip_gradient(grad).size == 0


class TestSpecialFunctions:
    def test_log_gamma(self):
        assert float(log_gamma(5.0)) == pytest.approx(math.log(24.0))

    def test_log_beta_uniform(self):
        assert float(log_beta(1.0, 1.0)) == pytest.approx(0.0, abs=1e-12)

    def test_log_beta_symmetric(self):
        assert float(log_beta(2.5, 7.0)) == pytest.approx(float(log_beta(7.0, 2.5)))

    def test_safe_log(self):
        out = safe_log(jnp.array([0.0, -1.0, math.e]))
        assert float(out[0]) == -math.inf
        assert float(out[1]) == -math.inf
        assert float(out[2]) == pytest.approx(1.0)
        assert not bool(jnp.any(jnp.isnan(out)))

    def test_normal_log_density(self):
        expected = -0.5 * math.log(2 * math.pi * 4.0) - 0.5 * 1.0
        assert float(normal_log_density(3.0, 1.0, 4.0)) == pytest.approx(expected)

    def test_kl_zero_at_standard_normal(self):
        assert float(gaussian_kl_standard(0.0, 0.0)) == pytest.approx(0.0)
        assert float(gaussian_kl_standard(1.0, 0.0)) == pytest.approx(0.5)

    def test_two_sided_z(self):
        assert two_sided_z(0.95) == pytest.approx(1.959964, abs=1e-5)


class TestRng:
    def test_seed_reproducible(self):
        a = jr.normal(seed(3), (4,))
        b = jr.normal(seed(3), (4,))
        assert jnp.array_equal(a, b)

    def test_split_gives_distinct_keys(self):
        k1, k2 = split(seed(0))
        assert not jnp.array_equal(jr.normal(k1, (4,)), jr.normal(k2, (4,)))

    def test_split_num(self):
        assert len(split(seed(0), 5)) == 5

    def test_advance_steps_the_stream(self):
        state = seed(0)
        state_1, sub_1 = advance(state)
        state_2, sub_2 = advance(state_1)
        assert not jnp.array_equal(sub_1, sub_2)
        assert not jnp.array_equal(state_1, state_2)
        assert jnp.array_equal(advance(seed(0))[1], sub_1)
