"""
optimizer.py
------------

Adaptive gradient-ascent step built on Optax.

MVP implementation:
- Adam (bias-corrected first / second raw-moment running averages, step
  scaled by their ratio) via optax.adam.
- Gradients are clipped to a maximum Euclidean norm before every step.

The optimizer state (the moment accumulators) is an explicit value: each
call takes (params, grads, state) and returns (new_params, new_state), so
the iteration loop threads it through without hidden mutation.

Connections
-----------
- ZeroInflatedLogNormalVI packs its variational parameters into a vector
  and calls ascent_step once per iteration with the analytical ELBO gradient.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
import optax

from tierbayes.utils.math import clip_gradient


@dataclass(frozen=True)
class AdamConfig:
    """
    Hyperparameters of the adaptive step.

    Attributes
    ----------
    learning_rate : float
        Step size.
    b1, b2 : float
        Decay rates of the first and second moment averages.
    eps : float
        Added to the second-moment root for numerical stability.
    max_grad_norm : float
        Gradients are clipped to this Euclidean norm before each step.
    """

    learning_rate: float = 0.01
    b1: float = 0.9
    b2: float = 0.999
    eps: float = 1e-8
    max_grad_norm: float = 5.0

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if not (0 <= self.b1 < 1 and 0 <= self.b2 < 1):
            raise ValueError(f"b1 and b2 must lie in [0, 1), got {self.b1}, {self.b2}")
        if self.max_grad_norm <= 0:
            raise ValueError(f"max_grad_norm must be positive, got {self.max_grad_norm}")

    def build(self) -> optax.GradientTransformation:
        """Return the Optax transformation for this configuration."""
        return optax.adam(learning_rate=self.learning_rate, b1=self.b1, b2=self.b2, eps=self.eps)


def ascent_step(
    optimizer: optax.GradientTransformation,
    params: jnp.ndarray,
    grads: jnp.ndarray,
    opt_state: optax.OptState,
    *,
    max_grad_norm: float = 5.0,
) -> tuple[jnp.ndarray, optax.OptState]:
    """
    One gradient-ascent step.

    Parameters
    ----------
    optimizer : optax.GradientTransformation
        Typically AdamConfig().build().
    params : jnp.ndarray
        Current parameter vector.
    grads : jnp.ndarray
        Gradient of the objective being maximized.
    opt_state : optax.OptState
        Moment accumulators from the previous step (optimizer.init(params)
        for the first one).
    max_grad_norm : float, default=5.0
        Clip threshold applied to grads.

    Returns
    -------
    (new_params, new_opt_state)
    """
    grads = clip_gradient(grads, max_grad_norm)
    # Optax minimizes; ascend by descending on the negated gradient.
    updates, opt_state = optimizer.update(-grads, opt_state, params)
    return optax.apply_updates(params, updates), opt_state
