"""
beta_posterior.py
-----------------

Exact Beta posterior over a conversion rate (Tier 1 result).

Closed-form summaries; the equal-tailed interval uses scipy's Beta
quantile function. Stateless: every query is recomputed from (alpha, beta).
"""

from __future__ import annotations

import jax.numpy as jnp
import jax.random as jr
from jax.scipy.stats import beta as jbeta
from scipy import stats as sp_stats

from tierbayes.posterior.base_posterior import BasePosterior


class BetaPosterior(BasePosterior):
    """
    Beta(alpha, beta) posterior.

    Parameters
    ----------
    alpha : float
        Posterior pseudo-successes.
    beta : float
        Posterior pseudo-failures.
    """

    __slots__ = ("alpha", "beta")

    kind = "beta"

    def __init__(self, alpha: float, beta: float) -> None:
        if alpha <= 0 or beta <= 0:
            raise ValueError("Alpha and beta must be positive")
        self.alpha = alpha
        self.beta = beta

    def mean(self) -> jnp.ndarray:
        """alpha / (alpha + beta)."""
        return jnp.array([self.alpha / (self.alpha + self.beta)])

    def variance(self) -> jnp.ndarray:
        """alpha * beta / ((alpha + beta)^2 * (alpha + beta + 1))."""
        ab = self.alpha + self.beta
        return jnp.array([(self.alpha * self.beta) / (ab * ab * (ab + 1))])

    def credible_interval(self, level: float = 0.95) -> jnp.ndarray:
        """Equal-tailed interval from the Beta quantile function."""
        level = self._check_level(level)
        lower_tail = (1 - level) / 2
        dist = sp_stats.beta(self.alpha, self.beta)
        return jnp.array([[float(dist.ppf(lower_tail)), float(dist.ppf(1 - lower_tail))]])

    def sample(self, n: int | None = None, *, key) -> jnp.ndarray:
        draws = jr.beta(key, self.alpha, self.beta, shape=(self._num_draws(n), 1))
        return self._shape_draws(draws, n)

    def log_prob(self, x) -> jnp.ndarray:
        """Beta log density of the conversion rate at x (-inf outside [0, 1])."""
        return jbeta.logpdf(jnp.asarray(x, dtype=float), self.alpha, self.beta)

    def __repr__(self) -> str:
        return f"BetaPosterior(alpha={self.alpha:.3f}, beta={self.beta:.3f})"
