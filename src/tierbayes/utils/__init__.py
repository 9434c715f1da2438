"""
utils
=====

Shared utility functions and helpers for tierbayes.

This subpackage provides:
- math : numerically stable primitives (log-sum-exp, gradient clipping,
  log-gamma / log-beta, safe log, Gaussian densities and KL).
- rng : explicit JAX PRNG key handling for reproducibility.
"""

from .math import (
    clip_gradient,
    gaussian_kl_standard,
    log_beta,
    log_gamma,
    log_sum_exp,
    normal_log_density,
    safe_log,
    two_sided_z,
)
from .rng import advance, seed, split

__all__ = [
    # math
    "log_sum_exp",
    "clip_gradient",
    "log_gamma",
    "log_beta",
    "safe_log",
    "normal_log_density",
    "gaussian_kl_standard",
    "two_sided_z",
    # rng
    "advance",
    "seed",
    "split",
]
