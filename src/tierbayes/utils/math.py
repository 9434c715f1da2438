"""
math.py
-------

Numerically stable primitives shared by every inference tier.

Includes:
- log_sum_exp : log(sum(exp(v))) without overflow, guarded for non-finite maxima.
- clip_gradient : rescale a gradient vector to a maximum Euclidean norm.
- log_gamma, log_beta : special functions for the exact conjugate evidence.
- safe_log : log that maps non-positive inputs to -inf instead of nan.
- normal_log_density : Gaussian log density used by the EM tier.
- gaussian_kl_standard : closed-form KL(N(m, exp(s)) || N(0, 1)).
- two_sided_z : standard-normal quantile for an equal-tailed interval.

All functions use JAX (jax.numpy) so they can be called inside jitted
E-steps and ELBO gradients.

Examples
--------
>>> from tierbayes.utils import math
>>> float(math.log_sum_exp([1000.0, 1001.0, 999.0]))  # doctest: +ELLIPSIS
1001.40...
>>> math.clip_gradient([30.0, 40.0], max_norm=10.0)
Array([6., 8.], dtype=float64)
"""

from __future__ import annotations

import math

import jax.numpy as jnp
from jax.scipy.special import gammaln
from jax.scipy.stats import norm

HALF_LOG_2PI = 0.5 * math.log(2.0 * math.pi)


def log_sum_exp(values, axis: int | None = None) -> jnp.ndarray:
    """
    Compute log(sum(exp(values))) in a numerically stable way.

    Parameters
    ----------
    values : array_like
        Log-space values.
    axis : int | None, default=None
        Axis to reduce over. None reduces over all entries.

    Returns
    -------
    jnp.ndarray
        Reduced log-sum-exp. An empty input gives -inf.

    Notes
    -----
    Uses max + log(sum(exp(v - max))). When the maximum is non-finite
    (all entries -inf, or any +inf) the maximum itself is returned, which
    avoids the nan produced by (-inf) - (-inf).
    """
    values = jnp.asarray(values, dtype=float)
    if values.size == 0:
        return jnp.asarray(-jnp.inf)

    max_val = jnp.max(values, axis=axis, keepdims=True)
    finite = jnp.isfinite(max_val)
    shift = jnp.where(finite, max_val, 0.0)
    summed = jnp.sum(jnp.exp(values - shift), axis=axis, keepdims=True)
    out = jnp.where(finite, shift + jnp.log(summed), max_val)

    if axis is None:
        return out.reshape(())
    return jnp.squeeze(out, axis=axis)


def clip_gradient(grad, max_norm: float = 10.0) -> jnp.ndarray:
    """
    Rescale a gradient so that its Euclidean norm does not exceed max_norm.

    Parameters
    ----------
    grad : array_like | None
        Gradient vector.
    max_norm : float, default=10.0
        Largest allowed norm.

    Returns
    -------
    jnp.ndarray
        grad itself when its norm is within bounds, otherwise grad scaled by
        max_norm / norm (direction preserved). None or empty input gives an
        empty array.
    """
    if grad is None:
        return jnp.zeros((0,))
    grad = jnp.asarray(grad, dtype=float)
    if grad.size == 0:
        return grad

    norm_ = jnp.sqrt(jnp.sum(grad * grad))
    scale = jnp.where(norm_ > max_norm, max_norm / jnp.where(norm_ > 0, norm_, 1.0), 1.0)
    return grad * scale


def log_gamma(x) -> jnp.ndarray:
    """Natural log of the gamma function."""
    return gammaln(jnp.asarray(x, dtype=float))


def log_beta(a, b) -> jnp.ndarray:
    """log B(a, b) = log Γ(a) + log Γ(b) - log Γ(a + b)."""
    return log_gamma(a) + log_gamma(b) - log_gamma(jnp.asarray(a, dtype=float) + b)


def safe_log(x) -> jnp.ndarray:
    """log(x) for x > 0, -inf otherwise. Never produces nan for finite input."""
    x = jnp.asarray(x, dtype=float)
    positive = x > 0
    return jnp.where(positive, jnp.log(jnp.where(positive, x, 1.0)), -jnp.inf)


def normal_log_density(x, mean, variance) -> jnp.ndarray:
    """
    Log density of N(mean, variance) evaluated at x (broadcasting).

    Notes
    -----
    log N(x; m, v) = -0.5 * log(2 pi v) - 0.5 * (x - m)^2 / v
    """
    x = jnp.asarray(x, dtype=float)
    return -HALF_LOG_2PI - 0.5 * jnp.log(variance) - 0.5 * (x - mean) ** 2 / variance


def gaussian_kl_standard(mean, log_var) -> jnp.ndarray:
    """
    KL divergence of N(mean, exp(log_var)) from the standard normal N(0, 1).

    KL = 0.5 * (exp(log_var) + mean^2 - 1 - log_var)
    """
    return 0.5 * (jnp.exp(log_var) + mean**2 - 1.0 - log_var)


def two_sided_z(level: float) -> float:
    """Standard-normal quantile z such that [-z, z] holds `level` mass."""
    return float(norm.ppf(1.0 - (1.0 - level) / 2.0))
