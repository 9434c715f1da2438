"""
ziln.py
-------

Tier 3: mean-field variational inference for the zero-inflated LogNormal
model (revenue per visitor: many exact zeros, positive skewed purchases).

Model
-----
- x_i = 0 with probability pi = sigmoid(eta), else x_i ~ LogNormal(mu, sigma^2)
- q(eta) = N(zero_logit_mean, exp(zero_logit_log_var))
- mu = value_mean, sigma^2 = exp(value_log_var)
- standard normal priors on both blocks, entering the ELBO as
  KL(N(m, exp(s)) || N(0, 1))

Objective
---------
ELBO(theta) = E_q[log p(zeros | eta)] + log p(positives | mu, sigma) - KL

The Bernoulli expectation uses a second-order expansion around the logit
mean, E[f(eta)] ~ f(m) - 0.5 * v * n * pi * (1 - pi), which is what lets
the logit variance shrink as 1 / (n * pi * (1 - pi) + 1).

Gradients are analytical (closed form below) and the parameters are
updated with Adam after clipping the gradient norm to 5.

Connections
-----------
- ascent_step (inference.optimizer) performs the Adam update.
- Returns a ZILNPosterior carrying its own PRNG key for Monte Carlo summaries.
"""

from __future__ import annotations

import logging
import warnings

import jax
import jax.numpy as jnp
import numpy as np

from tierbayes.data import DataInput
from tierbayes.exceptions import ConvergenceWarning, InvalidDataError
from tierbayes.inference.base import (
    PROGRESS_EVERY,
    Diagnostics,
    FitOptions,
    InferenceEngine,
    VIResult,
)
from tierbayes.inference.optimizer import AdamConfig, ascent_step
from tierbayes.posterior.ziln_posterior import ZILNParams, ZILNPosterior
from tierbayes.utils.math import HALF_LOG_2PI, gaussian_kl_standard
from tierbayes.utils.rng import seed, split

logger = logging.getLogger(__name__)

# Relative parameter change is measured against ||theta|| + this.
RELATIVE_EPS = 1e-10


@jax.jit
def elbo_and_gradient(theta, num_zeros, num_total, log_values):
    """
    ELBO and its analytical gradient.

    Parameters
    ----------
    theta : jnp.ndarray
        [zero_logit_mean, zero_logit_log_var, value_mean, value_log_var].
    num_zeros, num_total : float
        Count of exact zeros and of all observations.
    log_values : jnp.ndarray
        log of the strictly positive observations.

    Returns
    -------
    (elbo, grad) : (jnp.ndarray, jnp.ndarray)
        Scalar ELBO and gradient of shape (4,).
    """
    m_z, s_z, m_v, s_v = theta[0], theta[1], theta[2], theta[3]
    v_z = jnp.exp(s_z)
    v_v = jnp.exp(s_v)
    sigma = jnp.sqrt(v_v)

    p = jax.nn.sigmoid(m_z)
    curvature = num_total * p * (1.0 - p)
    num_positive = num_total - num_zeros

    bernoulli = (
        num_zeros * jax.nn.log_sigmoid(m_z)
        + num_positive * jax.nn.log_sigmoid(-m_z)
        - 0.5 * v_z * curvature
    )
    z = (log_values - m_v) / sigma
    lognormal = jnp.sum(-log_values - 0.5 * s_v - HALF_LOG_2PI - 0.5 * z**2)
    kl = gaussian_kl_standard(m_z, s_z) + gaussian_kl_standard(m_v, s_v)
    elbo = bernoulli + lognormal - kl

    grad = jnp.stack(
        [
            num_zeros - num_total * p - 0.5 * v_z * curvature * (1.0 - 2.0 * p) - m_z,
            -0.5 * v_z * curvature - 0.5 * (v_z - 1.0),
            jnp.sum(z) / sigma - m_v,
            0.5 * jnp.sum(z**2 - 1.0) - 0.5 * (v_v - 1.0),
        ]
    )
    return elbo, grad


class ZeroInflatedLogNormalVI(InferenceEngine):
    """
    Gradient-based VI for zero-inflated LogNormal data.

    Parameters
    ----------
    learning_rate : float, default=0.01
        Adam step size.
    max_iterations : int, default=1000
        Iteration cap when FitOptions does not set one.
    tolerance : float, default=1e-5
        Relative parameter-change threshold when FitOptions does not set one.
    gradient_clip : float, default=5.0
        Maximum gradient norm before each Adam step.
    """

    model_type = "zero-inflated-lognormal"

    def __init__(
        self,
        learning_rate: float = 0.01,
        max_iterations: int = 1000,
        tolerance: float = 1e-5,
        gradient_clip: float = 5.0,
    ):
        self.adam = AdamConfig(learning_rate=learning_rate, max_grad_norm=gradient_clip)
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def fit(self, data_input: DataInput, options: FitOptions | None = None, *, key=None, progress=None) -> VIResult:
        """
        Maximize the ELBO with Adam.

        Parameters
        ----------
        data_input : DataInput
            Non-negative observations containing at least one exact zero.
        options : FitOptions | None
            max_iterations and tolerance overrides.
        key : jax.Array | None
            Stored on the posterior for its Monte Carlo summaries. None uses seed(0).
        progress : callable(current, total) | None
            Called every 10 iterations.

        Returns
        -------
        VIResult
            ZILNPosterior and diagnostics with one ELBO per iteration.

        Raises
        ------
        InvalidDataError
            If the data is empty, negative, non-finite, or has no zeros.
        """
        options = options or FitOptions()
        max_iterations, tolerance = options.resolve(self.max_iterations, self.tolerance)
        values = self._validate(data_input)
        key = seed(0) if key is None else key

        positives = values[values > 0]
        num_zeros = float(values.size - positives.size)
        num_total = float(values.size)
        log_values = jnp.log(jnp.asarray(positives, dtype=float))

        theta = self._initial_params(values, positives).to_vector()
        optimizer = self.adam.build()
        opt_state = optimizer.init(theta)

        logger.debug(
            "%s: n=%d, zeros=%d, initial params %s", self.model_type, values.size, int(num_zeros), theta
        )

        history: list[float] = []
        converged = False
        for iteration in range(1, max_iterations + 1):
            elbo, grad = elbo_and_gradient(theta, num_zeros, num_total, log_values)
            history.append(float(elbo))

            new_theta, opt_state = ascent_step(
                optimizer, theta, grad, opt_state, max_grad_norm=self.adam.max_grad_norm
            )
            change = float(jnp.linalg.norm(new_theta - theta) / (jnp.linalg.norm(new_theta) + RELATIVE_EPS))
            theta = new_theta

            if progress is not None and iteration % PROGRESS_EVERY == 0:
                progress(iteration, max_iterations)

            if change < tolerance:
                converged = True
                break

        if not converged:
            warnings.warn(
                f"{self.model_type} VI did not converge in {max_iterations} iterations",
                ConvergenceWarning,
                stacklevel=2,
            )
        logger.debug("%s: %d iterations, converged=%s", self.model_type, len(history), converged)

        _, posterior_key = split(key)
        return VIResult(
            posterior=ZILNPosterior(
                ZILNParams.from_vector(theta), num_nonzero=int(positives.size), key=posterior_key
            ),
            diagnostics=Diagnostics(
                converged=converged,
                iterations=len(history),
                final_elbo=history[-1],
                history=tuple(history),
            ),
        )

    @staticmethod
    def _initial_params(values: np.ndarray, positives: np.ndarray) -> ZILNParams:
        """Moment-based starting point."""
        n = values.size
        if positives.size == 0:
            return ZILNParams(2.0, float(np.log(0.1)), 0.0, 0.0)

        zero_rate = 1.0 - positives.size / n
        clipped = float(np.clip(zero_rate, 0.01, 0.99))
        logs = np.log(positives)
        log_var = float(np.var(logs, ddof=1)) if logs.size > 1 else 0.0
        return ZILNParams(
            zero_logit_mean=float(np.log(clipped / (1.0 - clipped))),
            zero_logit_log_var=float(-np.log(n * zero_rate * (1.0 - zero_rate) + 1.0)),
            value_mean=float(np.mean(logs)),
            value_log_var=float(np.log(max(log_var, 0.01))),
        )

    def _validate(self, data_input: DataInput) -> np.ndarray:
        if data_input.is_summary:
            raise InvalidDataError(f"{self.model_type} requires a sequence of observations")
        values = np.asarray(data_input.data, dtype=float)
        if values.size == 0:
            raise InvalidDataError(f"{self.model_type} requires at least one observation")
        if not np.all(np.isfinite(values)):
            raise InvalidDataError(f"{self.model_type} observations must be finite")
        if np.any(values < 0):
            raise InvalidDataError("zero-inflated LogNormal requires non-negative values")
        if not np.any(values == 0):
            raise InvalidDataError("No zeros found: use a plain LogNormal model instead")
        return values
