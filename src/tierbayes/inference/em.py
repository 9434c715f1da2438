"""
em.py
-----

Tier 2: Expectation-Maximization for Normal / LogNormal mixtures.

Algorithm
---------
1. K-means++ seeding of the component means.
2. E-step: log responsibilities log w_j + log N(x_i; mean_j, var_j),
   normalized with log_sum_exp (never in probability space).
3. M-step: weighted weights / means / variances, variances floored at
   VARIANCE_FLOOR so a component cannot collapse onto one point.
4. Stop when the total log-likelihood changes by less than tolerance, or at
   max_iterations (converged=False, with a ConvergenceWarning).

Connections
-----------
- Returns a MixturePosterior with components sorted by ascending mean.
- LogNormalMixtureEM log-transforms strictly positive data and runs the same
  loop; its components are reported on the log scale.
"""

from __future__ import annotations

import logging
import warnings

import jax
import jax.numpy as jnp
import jax.random as jr

from tierbayes.data import DataInput
from tierbayes.exceptions import ConvergenceWarning, InvalidDataError
from tierbayes.inference.base import (
    PROGRESS_EVERY,
    Diagnostics,
    FitOptions,
    InferenceEngine,
    VIResult,
)
from tierbayes.posterior.mixture_posterior import MixtureComponent, MixturePosterior
from tierbayes.utils.math import log_sum_exp, normal_log_density, safe_log
from tierbayes.utils.rng import seed, split

logger = logging.getLogger(__name__)

VARIANCE_FLOOR = 1e-6


def kmeans_plus_plus(values: jnp.ndarray, k: int, *, key: jax.Array) -> jnp.ndarray:
    """
    Choose k initial centers with K-means++ seeding.

    Parameters
    ----------
    values : jnp.ndarray
        Observations, shape (n,).
    k : int
        Number of centers, 1 <= k <= n.
    key : jax.Array
        PRNG key.

    Returns
    -------
    jnp.ndarray
        Centers, shape (k,).

    Notes
    -----
    The first center is uniform over the data; each later one is drawn with
    probability proportional to the squared distance to the nearest chosen
    center. When every point coincides with a center (duplicate data) the
    draw falls back to uniform.
    """
    n = values.shape[0]
    keys = split(key, k)
    centers = [values[jr.randint(keys[0], (), 0, n)]]

    for i in range(1, k):
        chosen = jnp.stack(centers)
        sq_dist = jnp.min((values[:, None] - chosen[None, :]) ** 2, axis=1)
        total = jnp.sum(sq_dist)
        probs = jnp.where(total > 0, sq_dist / jnp.where(total > 0, total, 1.0), 1.0 / n)
        centers.append(values[jr.choice(keys[i], n, p=probs)])

    return jnp.stack(centers)


@jax.jit
def component_log_probs(values, means, variances, log_weights) -> jnp.ndarray:
    """log w_j + log N(x_i; mean_j, var_j), shape (n, k)."""
    return log_weights[None, :] + normal_log_density(values[:, None], means[None, :], variances[None, :])


@jax.jit
def e_step(values, means, variances, log_weights) -> jnp.ndarray:
    """
    Responsibilities r_ij, normalized in log space.

    Returns
    -------
    jnp.ndarray
        Shape (n, k); every row sums to 1.
    """
    log_probs = component_log_probs(values, means, variances, log_weights)
    log_norm = log_sum_exp(log_probs, axis=1)
    return jnp.exp(log_probs - log_norm[:, None])


@jax.jit
def m_step(values, responsibilities, previous_means):
    """
    Weighted parameter update.

    Returns
    -------
    means, variances, weights : jnp.ndarray
        Each of shape (k,). A component with no responsibility keeps its
        previous mean and gets zero weight; variances are floored.
    """
    n = values.shape[0]
    totals = jnp.sum(responsibilities, axis=0)
    occupied = totals > 0
    safe_totals = jnp.where(occupied, totals, 1.0)

    means = jnp.where(occupied, responsibilities.T @ values / safe_totals, previous_means)
    sq_dev = (values[:, None] - means[None, :]) ** 2
    variances = jnp.maximum(jnp.sum(responsibilities * sq_dev, axis=0) / safe_totals, VARIANCE_FLOOR)
    weights = totals / n
    return means, variances, weights / jnp.sum(weights)


@jax.jit
def mixture_log_likelihood(values, means, variances, log_weights) -> jnp.ndarray:
    """sum_i log_sum_exp_j(log w_j + log N(x_i; mean_j, var_j))."""
    return jnp.sum(log_sum_exp(component_log_probs(values, means, variances, log_weights), axis=1))


class NormalMixtureEM(InferenceEngine):
    """
    Normal mixture fitted by EM.

    Parameters
    ----------
    num_components : int, default=2
        Component count used when the DataInput config does not set one.
    max_iterations : int, default=100
        Iteration cap when FitOptions does not set one.
    tolerance : float, default=1e-6
        Log-likelihood change threshold when FitOptions does not set one.
    """

    model_type = "normal-mixture"
    family = "normal"

    def __init__(self, num_components: int = 2, max_iterations: int = 100, tolerance: float = 1e-6):
        self.num_components = num_components
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def fit(self, data_input: DataInput, options: FitOptions | None = None, *, key=None, progress=None) -> VIResult:
        """
        Fit the mixture with EM.

        Parameters
        ----------
        data_input : DataInput
            Sequence of observations; config may set num_components.
        options : FitOptions | None
            max_iterations and tolerance overrides.
        key : jax.Array | None
            PRNG key for K-means++ seeding. None uses seed(0).
        progress : callable(current, total) | None
            Called every 10 iterations.

        Returns
        -------
        VIResult
            MixturePosterior and diagnostics whose final_elbo is the final
            total log-likelihood and whose history holds one value per iteration.

        Raises
        ------
        InvalidDataError
            If the data is empty, non-finite, or k is outside [1, n].
        """
        options = options or FitOptions()
        max_iterations, tolerance = options.resolve(self.max_iterations, self.tolerance)
        values = self._prepare(data_input)
        k = self._num_components(data_input, values.shape[0])
        key = seed(0) if key is None else key

        logger.debug("%s: fitting k=%d components to n=%d values", self.model_type, k, values.shape[0])

        means = kmeans_plus_plus(values, k, key=key)
        variances = jnp.full(k, max(float(jnp.var(values)) / k, VARIANCE_FLOOR))
        weights = jnp.full(k, 1.0 / k)

        history: list[float] = []
        previous = float("-inf")
        converged = False
        for iteration in range(1, max_iterations + 1):
            responsibilities = e_step(values, means, variances, safe_log(weights))
            means, variances, weights = m_step(values, responsibilities, means)

            log_lik = float(mixture_log_likelihood(values, means, variances, safe_log(weights)))
            history.append(log_lik)

            if progress is not None and iteration % PROGRESS_EVERY == 0:
                progress(iteration, max_iterations)

            if abs(log_lik - previous) < tolerance:
                converged = True
                break
            previous = log_lik

        if not converged:
            warnings.warn(
                f"{self.model_type} EM did not converge in {max_iterations} iterations",
                ConvergenceWarning,
                stacklevel=2,
            )
        logger.debug("%s: %d iterations, converged=%s", self.model_type, len(history), converged)

        order = jnp.argsort(means)
        components = [
            MixtureComponent(float(means[j]), float(variances[j]), float(weights[j])) for j in order
        ]
        return VIResult(
            posterior=MixturePosterior(components, family=self.family),
            diagnostics=Diagnostics(
                converged=converged,
                iterations=len(history),
                final_elbo=history[-1],
                history=tuple(history),
            ),
        )

    # ------------------------------------------------------------------
    # VALIDATION
    # ------------------------------------------------------------------
    def _prepare(self, data_input: DataInput) -> jnp.ndarray:
        """Validate observations and map them to the scale EM runs on."""
        if data_input.is_summary:
            raise InvalidDataError(f"{self.model_type} requires a sequence of observations")
        values = data_input.values()
        if values.shape[0] == 0:
            raise InvalidDataError(f"{self.model_type} requires at least one observation")
        if not bool(jnp.all(jnp.isfinite(values))):
            raise InvalidDataError(f"{self.model_type} observations must be finite")
        return values

    def _num_components(self, data_input: DataInput, n: int) -> int:
        k = data_input.num_components
        k = self.num_components if k is None else k
        if isinstance(k, bool) or not float(k).is_integer():
            raise InvalidDataError(f"num_components must be an integer, got {k!r}")
        k = int(k)
        if not 1 <= k <= n:
            raise InvalidDataError(f"num_components ({k}) must satisfy 1 <= k <= n ({n})")
        return k


class LogNormalMixtureEM(NormalMixtureEM):
    """
    LogNormal mixture: EM on log-transformed, strictly positive data.

    Components (and every posterior query) are reported on the log scale;
    MixturePosterior.expected_value() converts back to the value scale.
    """

    model_type = "lognormal-mixture"
    family = "lognormal"

    def _prepare(self, data_input: DataInput) -> jnp.ndarray:
        values = super()._prepare(data_input)
        if not bool(jnp.all(values > 0)):
            raise InvalidDataError("LogNormal mixture requires strictly positive values")
        return jnp.log(values)
