"""
test_posteriors.py
------------------

Tests for the shared posterior contract:
- sample shapes and reproducibility
- empirical means of 10,000 draws against mean()
- credible interval validation
- plain-data summaries
"""

import math

import jax.numpy as jnp
import jax.random as jr
import numpy as np
import pytest

from tierbayes.posterior import (
    DEFAULT_LEVELS,
    BasePosterior,
    BetaPosterior,
    MixtureComponent,
    MixturePosterior,
    ZILNParams,
    ZILNPosterior,
    summarize,
)
from tierbayes.utils.rng import seed

NUM_DRAWS = 10_000


@pytest.fixture
def beta():
    return BetaPosterior(51.0, 51.0)


@pytest.fixture
def mixture():
    return MixturePosterior([(-2.0, 1.0, 0.3), (3.0, 0.5, 0.7)])


@pytest.fixture
def ziln():
    params = ZILNParams(math.log(0.3 / 0.7), math.log(1 / 106), 2.0, math.log(0.25))
    return ZILNPosterior(params, num_nonzero=350, key=seed(1))


@pytest.fixture(params=["beta", "mixture", "ziln"])
def posterior(request):
    return request.getfixturevalue(request.param)


class TestContract:
    def test_is_base_posterior(self, posterior):
        assert isinstance(posterior, BasePosterior)

    def test_single_draw_shape(self, posterior):
        draw = posterior.sample(key=seed(0))
        assert draw.ndim == 1

    def test_batch_draw_shape(self, posterior):
        draws = posterior.sample(5, key=seed(0))
        assert draws.shape[0] == 5
        assert draws.ndim == 2

    def test_same_key_same_draws(self, posterior):
        assert jnp.array_equal(posterior.sample(10, key=seed(3)), posterior.sample(10, key=seed(3)))

    def test_mean_and_variance_finite(self, posterior):
        assert bool(jnp.all(jnp.isfinite(posterior.mean())))
        assert bool(jnp.all(jnp.isfinite(posterior.variance())))
        assert bool(jnp.all(posterior.variance() >= 0))

    @pytest.mark.parametrize("level", [0.0, 1.0, -0.2, 1.5])
    def test_invalid_levels(self, posterior, level):
        with pytest.raises(ValueError):
            posterior.credible_interval(level)

    def test_interval_contains_mean(self, posterior):
        ci = posterior.credible_interval(0.95)
        mean = posterior.mean()
        assert ci.shape[1] == 2
        assert bool(jnp.all(ci[:, 0] <= mean))
        assert bool(jnp.all(mean <= ci[:, 1]))


class TestSampleMeans:
    """Empirical means of 10,000 draws within four standard errors."""

    def test_beta(self, beta):
        draws = np.asarray(beta.sample(NUM_DRAWS, key=seed(0)))[:, 0]
        se = math.sqrt(float(beta.variance()[0]) / NUM_DRAWS)
        assert abs(draws.mean() - float(beta.mean()[0])) < 4 * se

    def test_mixture(self, mixture):
        draws = np.asarray(mixture.sample(NUM_DRAWS, key=seed(0)))[:, 0]
        total_var = sum(c.weight * (c.variance + c.mean**2) for c in mixture.components)
        total_var -= mixture.expected_value() ** 2
        se = math.sqrt(total_var / NUM_DRAWS)
        assert abs(draws.mean() - mixture.expected_value()) < 4 * se

    def test_mixture_component_shares(self, mixture):
        draws = np.asarray(mixture.sample(NUM_DRAWS, key=seed(2)))[:, 0]
        share_high = float(np.mean(draws > 0.5))
        assert abs(share_high - 0.7) < 0.03

    def test_ziln(self, ziln):
        draws = np.asarray(ziln.sample(NUM_DRAWS, key=seed(0)))
        mean = np.asarray(ziln.mean())
        se = draws.std(axis=0) / math.sqrt(NUM_DRAWS)
        assert np.all(np.abs(draws.mean(axis=0) - mean) < 4 * se + 1e-3 * np.abs(mean))

    def test_ziln_overall_is_zero_or_value(self, ziln):
        draws = np.asarray(ziln.sample(1_000, key=seed(4)))
        is_zero, value, overall = draws[:, 0], draws[:, 1], draws[:, 2]
        assert np.all(np.where(is_zero == 1.0, overall == 0.0, overall == value))


class TestMixturePosterior:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError, match="sum to 1"):
            MixturePosterior([(0.0, 1.0, 0.5), (1.0, 1.0, 0.6)])

    def test_negative_weight(self):
        with pytest.raises(ValueError, match="non-negative"):
            MixturePosterior([(0.0, 1.0, 1.5), (1.0, 1.0, -0.5)])

    def test_unknown_family(self):
        with pytest.raises(ValueError, match="family"):
            MixturePosterior([(0.0, 1.0, 1.0)], family="gamma")

    def test_per_component_summaries(self, mixture):
        assert jnp.allclose(mixture.mean(), jnp.array([-2.0, 3.0]))
        assert jnp.allclose(mixture.variance(), jnp.array([1.0, 0.5]))
        assert mixture.credible_interval(0.9).shape == (2, 2)

    def test_components_are_named(self, mixture):
        assert mixture.components[0] == MixtureComponent(mean=-2.0, variance=1.0, weight=0.3)

    def test_expected_value(self, mixture):
        assert mixture.expected_value() == pytest.approx(0.3 * -2.0 + 0.7 * 3.0)

    def test_lognormal_expected_value(self):
        posterior = MixturePosterior([(0.0, 0.5, 1.0)], family="lognormal")
        assert posterior.expected_value() == pytest.approx(math.exp(0.25))

    def test_log_prob_matches_mixture_density(self, mixture):
        x = 0.7
        density = 0.3 * math.exp(-0.5 * (x + 2.0) ** 2) / math.sqrt(2 * math.pi) + 0.7 * math.exp(
            -0.5 * (x - 3.0) ** 2 / 0.5
        ) / math.sqrt(2 * math.pi * 0.5)
        assert float(mixture.log_prob(x)) == pytest.approx(math.log(density))

    def test_log_prob_vectorized(self, mixture):
        assert mixture.log_prob(jnp.array([0.0, 1.0, 2.0])).shape == (3,)


class TestSummarize:
    def test_beta_summary(self, beta):
        summary = summarize(beta)
        assert summary["kind"] == "beta"
        assert summary["mean"] == pytest.approx([0.5])
        assert set(summary["intervals"]) == set(DEFAULT_LEVELS)
        assert "components" not in summary

    def test_mixture_summary_has_components(self, mixture):
        summary = summarize(mixture, levels=(0.5,))
        assert list(summary["intervals"]) == [0.5]
        assert summary["components"][1] == {"mean": 3.0, "variance": 0.5, "weight": 0.7}
        assert summary["expected_value"] == pytest.approx(1.5)

    def test_summary_is_plain_data(self, ziln):
        summary = summarize(ziln)
        assert isinstance(summary["mean"], list)
        assert all(isinstance(v, float) for v in summary["variance"])
        assert all(isinstance(bounds, list) for bounds in summary["intervals"].values())


def test_sampling_negative_count_rejected(beta):
    with pytest.raises(ValueError):
        beta.sample(-1, key=jr.PRNGKey(0))
