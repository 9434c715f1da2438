"""
ziln_posterior.py
-----------------

Mean-field variational posterior for the zero-inflated LogNormal model
(Tier 3 result).

Latent dimensions reported by every query, in order:

0. zero probability (share of non-purchasers)
1. value of a non-zero observation (purchase value)
2. overall value per observation (0 with the zero probability, else the
   purchase value)

Variational parameters
----------------------
- zero_logit_mean, zero_logit_log_var : Gaussian over logit(zero probability)
- value_mean, value_log_var : location of the LogNormal on the log scale
  and the log of its squared scale; value_sigma = sqrt(exp(value_log_var))
  is the derived value-scale standard deviation.

The location's own posterior variance is value_sigma^2 / num_nonzero
(the Gaussian-mean posterior given num_nonzero log observations, taken
as value_sigma^2 when there are none); sample() draws the location from it
before drawing a value, and mean() uses the matching predictive variance.

The overall value is a point mass at zero mixed with a continuous law, so
its variance and interval have no closed form: variance() uses 1000 Monte
Carlo draws and the overall interval 10000 draws. When no key is passed
those draws use the key stored at fit time, so repeated queries on one
posterior return identical values.
"""

from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp
import jax.random as jr

from tierbayes.posterior.base_posterior import BasePosterior
from tierbayes.utils.math import HALF_LOG_2PI, safe_log, two_sided_z
from tierbayes.utils.rng import seed

VARIANCE_DRAWS = 1_000
INTERVAL_DRAWS = 10_000


class ZILNParams(NamedTuple):
    """Packed variational parameters, in optimizer vector order."""

    zero_logit_mean: float
    zero_logit_log_var: float
    value_mean: float
    value_log_var: float

    @classmethod
    def from_vector(cls, vector) -> ZILNParams:
        return cls(*(float(v) for v in vector))

    def to_vector(self) -> jnp.ndarray:
        return jnp.array(self, dtype=float)


class ZILNPosterior(BasePosterior):
    """
    Zero-inflated LogNormal posterior.

    Parameters
    ----------
    params : ZILNParams
        Fitted variational parameters.
    num_nonzero : int
        Number of strictly positive observations the fit saw.
    key : jax.Array | None
        Default PRNG key for the Monte Carlo summaries.
    """

    kind = "zero-inflated-lognormal"

    def __init__(self, params: ZILNParams, *, num_nonzero: int = 0, key=None) -> None:
        self._params = ZILNParams(*params)
        self._num_nonzero = int(num_nonzero)
        self._key = seed(0) if key is None else key

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------
    @property
    def params(self) -> ZILNParams:
        return self._params

    @property
    def num_nonzero(self) -> int:
        return self._num_nonzero

    @property
    def value_sigma(self) -> float:
        """Value-scale standard deviation, sqrt(exp(value_log_var))."""
        return float(jnp.sqrt(jnp.exp(self._params.value_log_var)))

    @property
    def location_variance(self) -> float:
        """Posterior variance of the log-scale location."""
        return float(jnp.exp(self._params.value_log_var)) / max(self._num_nonzero, 1)

    def zero_probability(self) -> float:
        """sigmoid(zero_logit_mean)."""
        return float(jax.nn.sigmoid(self._params.zero_logit_mean))

    # ------------------------------------------------------------------
    # SUMMARIES
    # ------------------------------------------------------------------
    def mean(self) -> jnp.ndarray:
        """
        [zero_prob, predictive purchase value, overall mean].

        The purchase value is the LogNormal mean under the same log-scale
        variance sample() draws with: value_sigma^2 plus the location
        variance.
        """
        zero_prob = self.zero_probability()
        log_var = self.value_sigma**2 + self.location_variance
        value = float(jnp.exp(self._params.value_mean + log_var / 2))
        return jnp.array([zero_prob, value, value * (1 - zero_prob)])

    def variance(self, *, key=None) -> jnp.ndarray:
        """Monte Carlo variance of each dimension from 1000 draws."""
        draws = self._draw(self._key if key is None else key, VARIANCE_DRAWS)
        return jnp.var(draws, axis=0)

    def credible_interval(self, level: float = 0.95, *, key=None) -> jnp.ndarray:
        """
        Intervals for [zero_prob, value, overall].

        Notes
        -----
        - zero_prob: the Gaussian logit interval mapped through the sigmoid.
        - value: exp of the log-scale interval, with width from the value
          scale plus the location uncertainty.
        - overall: empirical quantiles of 10000 sorted Monte Carlo draws.
        """
        level = self._check_level(level)
        alpha = (1 - level) / 2
        z = two_sided_z(level)
        p = self._params

        logit_sd = jnp.sqrt(jnp.exp(p.zero_logit_log_var))
        zero_ci = jax.nn.sigmoid(
            jnp.array([p.zero_logit_mean - z * logit_sd, p.zero_logit_mean + z * logit_sd])
        )

        log_value_sd = jnp.sqrt(self.value_sigma**2 + self.location_variance)
        value_ci = jnp.exp(jnp.array([p.value_mean - z * log_value_sd, p.value_mean + z * log_value_sd]))

        overall = jnp.sort(self._draw(self._key if key is None else key, INTERVAL_DRAWS)[:, 2])
        lower_idx = int(alpha * INTERVAL_DRAWS)
        upper_idx = min(int((1 - alpha) * INTERVAL_DRAWS), INTERVAL_DRAWS - 1)
        overall_ci = jnp.array([overall[lower_idx], overall[upper_idx]])

        return jnp.stack([zero_ci, value_ci, overall_ci])

    # ------------------------------------------------------------------
    # SAMPLING AND DENSITY
    # ------------------------------------------------------------------
    def sample(self, n: int | None = None, *, key) -> jnp.ndarray:
        """
        Draw [is_zero, value, overall] vectors.

        The zero indicator is Bernoulli with a probability drawn from the
        logit posterior. The value uses a location drawn from its own
        Gaussian posterior plus the derived value scale; overall is 0 for a
        zero draw and the value otherwise.
        """
        return self._shape_draws(self._draw(key, self._num_draws(n)), n)

    def _draw(self, key, num: int) -> jnp.ndarray:
        p = self._params
        k_logit, k_zero, k_loc, k_value = jr.split(key, 4)

        logits = p.zero_logit_mean + jnp.sqrt(jnp.exp(p.zero_logit_log_var)) * jr.normal(k_logit, (num,))
        is_zero = jr.uniform(k_zero, (num,)) < jax.nn.sigmoid(logits)

        location = p.value_mean + jnp.sqrt(self.location_variance) * jr.normal(k_loc, (num,))
        values = jnp.exp(location + self.value_sigma * jr.normal(k_value, (num,)))

        overall = jnp.where(is_zero, 0.0, values)
        return jnp.stack([is_zero.astype(float), values, overall], axis=1)

    def log_prob(self, x) -> jnp.ndarray:
        """
        Posterior-predictive log density of an observation.

        log pi at exactly 0, log(1 - pi) + LogNormal log density for x > 0,
        -inf for x < 0.
        """
        x = jnp.asarray(x, dtype=float)
        p = self._params
        zero_prob = jax.nn.sigmoid(p.zero_logit_mean)
        log_var = jnp.log(self.value_sigma**2 + self.location_variance)

        log_x = safe_log(x)
        finite_log_x = jnp.where(x > 0, log_x, 0.0)
        lognormal = (
            -finite_log_x
            - HALF_LOG_2PI
            - 0.5 * log_var
            - 0.5 * (finite_log_x - p.value_mean) ** 2 / jnp.exp(log_var)
        )
        positive = jnp.log1p(-zero_prob) + lognormal
        return jnp.where(x == 0, jnp.log(zero_prob), jnp.where(x > 0, positive, -jnp.inf))

    def __repr__(self) -> str:
        p = self._params
        return (
            "ZILNPosterior("
            f"zero_logit_mean={p.zero_logit_mean:.3f}, zero_logit_log_var={p.zero_logit_log_var:.3f}, "
            f"value_mean={p.value_mean:.3f}, value_log_var={p.value_log_var:.3f})"
        )
