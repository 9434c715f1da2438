"""
base_posterior.py
-----------------

Abstract base class for posterior representations in tierbayes.

Defines the common interface for all posterior types:

- BetaPosterior     : exact conjugate Beta over a conversion rate
- MixturePosterior  : fitted Normal / LogNormal mixture components
- ZILNPosterior     : mean-field Gaussian over a zero-inflated LogNormal

Why this matters
----------------
The three tiers fit completely different models (closed form, EM,
gradient VI), but UI and comparison code only ever asks for a mean, a
variance, draws and credible intervals. A common interface lets that code
treat every tier the same way.

Every method returns one entry per latent dimension of the posterior, and
every query is pure: a posterior is immutable data plus methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import jax.numpy as jnp

if TYPE_CHECKING:
    import jax


class BasePosterior(ABC):
    """
    Abstract base class for posterior results.

    Notes
    -----
    - Each concrete posterior (Beta, Mixture, ZILN) must inherit from this class.
    - All must provide mean, variance, sample, credible_interval and log_prob.
    - mean(), variance() and credible_interval() must be mutually consistent
      and never return nan for valid inputs.
    """

    #: Short tag identifying the posterior variant in plain-data summaries.
    kind: str = ""

    # ------------------------------------------------------------------
    # SUMMARIES
    # ------------------------------------------------------------------
    @abstractmethod
    def mean(self) -> jnp.ndarray:
        """
        Posterior mean, one entry per latent dimension.

        Returns
        -------
        jnp.ndarray
            Shape (d,).
        """
        ...

    @abstractmethod
    def variance(self) -> jnp.ndarray:
        """
        Posterior variance, one entry per latent dimension.

        Returns
        -------
        jnp.ndarray
            Shape (d,).
        """
        ...

    @abstractmethod
    def credible_interval(self, level: float = 0.95) -> jnp.ndarray:
        """
        Equal-tailed credible interval for each latent dimension.

        Parameters
        ----------
        level : float, default=0.95
            Probability mass inside the interval, in (0, 1).

        Returns
        -------
        jnp.ndarray
            Shape (d, 2): rows of [lower, upper].
        """
        ...

    # ------------------------------------------------------------------
    # SAMPLING AND DENSITY
    # ------------------------------------------------------------------
    @abstractmethod
    def sample(self, n: int | None = None, *, key: jax.Array) -> jnp.ndarray:
        """
        Draw from the posterior.

        Parameters
        ----------
        n : int | None, default=None
            Number of draws. None draws a single vector.
        key : jax.Array
            PRNG key for randomness.

        Returns
        -------
        jnp.ndarray
            Shape (d,) when n is None, else (n, d).
        """
        ...

    @abstractmethod
    def log_prob(self, x) -> jnp.ndarray:
        """
        Log density of the posterior (or posterior predictive) at x.

        Parameters
        ----------
        x : array_like
            Evaluation point(s).

        Returns
        -------
        jnp.ndarray
            Log density with the shape of x.
        """
        ...

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------
    @property
    def dim(self) -> int:
        """Number of latent dimensions reported by mean()."""
        return int(self.mean().shape[0])

    @staticmethod
    def _check_level(level: float) -> float:
        if not 0 < level < 1:
            raise ValueError(f"level must be between 0 and 1 exclusive, got {level}")
        return float(level)

    @staticmethod
    def _shape_draws(draws: jnp.ndarray, n: int | None) -> jnp.ndarray:
        """Drop the leading axis of (1, d) draws when a single vector was requested."""
        if n is None:
            return draws[0]
        return draws

    @staticmethod
    def _num_draws(n: int | None) -> int:
        if n is None:
            return 1
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        return int(n)
