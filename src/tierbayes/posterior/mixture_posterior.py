"""
mixture_posterior.py
--------------------

Posterior surrogate for a fitted Normal / LogNormal mixture (Tier 2 result).

Each component is reported independently: mean(), variance() and
credible_interval() return one entry per component, ordered by ascending
component mean. sample() draws from the mixture itself (component by
weight, then a Gaussian from that component).

For the LogNormal family the components live on the log scale, and so do
mean(), variance(), sample() and log_prob(); expected_value() converts the
mixture mean back to the value scale.
"""

from __future__ import annotations

from typing import Literal, NamedTuple

import jax.numpy as jnp
import jax.random as jr

from tierbayes.posterior.base_posterior import BasePosterior
from tierbayes.utils.math import log_sum_exp, normal_log_density, safe_log, two_sided_z

# Allowed deviation of sum(weights) from 1.
WEIGHT_TOLERANCE = 1e-6


class MixtureComponent(NamedTuple):
    """One fitted component: location, variance and mixing weight."""

    mean: float
    variance: float
    weight: float


class MixturePosterior(BasePosterior):
    """
    Mixture-of-Gaussians posterior surrogate.

    Parameters
    ----------
    components : sequence of MixtureComponent
        Fitted components. Weights must be non-negative and sum to 1.
    family : {"normal", "lognormal"}, default="normal"
        Scale the components were fitted on.

    Raises
    ------
    ValueError
        If the weights are negative or do not sum to 1 within 1e-6.
    """

    kind = "mixture"

    def __init__(
        self,
        components,
        family: Literal["normal", "lognormal"] = "normal",
    ) -> None:
        components = tuple(
            MixtureComponent(float(c[0]), float(c[1]), float(c[2])) for c in components
        )
        if not components:
            raise ValueError("MixturePosterior needs at least one component")
        weights = [c.weight for c in components]
        if min(weights) < 0:
            raise ValueError(f"mixture weights must be non-negative, got {weights}")
        if abs(sum(weights) - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"mixture weights must sum to 1, got {sum(weights)}")
        if family not in ("normal", "lognormal"):
            raise ValueError(f"family must be 'normal' or 'lognormal', got {family!r}")
        self._components = components
        self._family = family

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------
    @property
    def components(self) -> tuple[MixtureComponent, ...]:
        """Fitted components, ordered by ascending mean."""
        return self._components

    @property
    def family(self) -> str:
        return self._family

    @property
    def num_components(self) -> int:
        return len(self._components)

    def weights(self) -> jnp.ndarray:
        return jnp.array([c.weight for c in self._components])

    def expected_value(self) -> float:
        """
        Mean of the mixture as a whole.

        Notes
        -----
        - normal: sum_j w_j * mean_j
        - lognormal: sum_j w_j * exp(mean_j + variance_j / 2), on the value scale
        """
        if self._family == "lognormal":
            return float(
                sum(c.weight * jnp.exp(c.mean + c.variance / 2) for c in self._components)
            )
        return float(sum(c.weight * c.mean for c in self._components))

    # ------------------------------------------------------------------
    # SUMMARIES
    # ------------------------------------------------------------------
    def mean(self) -> jnp.ndarray:
        """Component means."""
        return jnp.array([c.mean for c in self._components])

    def variance(self) -> jnp.ndarray:
        """Component variances."""
        return jnp.array([c.variance for c in self._components])

    def credible_interval(self, level: float = 0.95) -> jnp.ndarray:
        """mean_j -/+ z * sd_j for each component."""
        z = two_sided_z(self._check_level(level))
        means = self.mean()
        half_width = z * jnp.sqrt(self.variance())
        return jnp.stack([means - half_width, means + half_width], axis=1)

    # ------------------------------------------------------------------
    # SAMPLING AND DENSITY
    # ------------------------------------------------------------------
    def sample(self, n: int | None = None, *, key) -> jnp.ndarray:
        """
        Draw values from the mixture.

        A component index is picked by scanning the cumulative weights for
        the first entry >= a uniform draw, then a Gaussian is drawn from it.
        """
        num = self._num_draws(n)
        k_pick, k_draw = jr.split(key)
        cumulative = jnp.cumsum(self.weights())
        u = jr.uniform(k_pick, (num,))
        index = jnp.sum(u[:, None] > cumulative[None, :], axis=1)
        index = jnp.minimum(index, self.num_components - 1)

        means = self.mean()[index]
        sds = jnp.sqrt(self.variance()[index])
        draws = means + sds * jr.normal(k_draw, (num,))
        return self._shape_draws(draws[:, None], n)

    def log_prob(self, x) -> jnp.ndarray:
        """Mixture log density: log_sum_exp_j(log w_j + log N(x; mean_j, var_j))."""
        x = jnp.asarray(x, dtype=float)
        terms = safe_log(self.weights()) + normal_log_density(
            x[..., None], self.mean(), self.variance()
        )
        return log_sum_exp(terms, axis=-1)

    def __repr__(self) -> str:
        parts = ", ".join(
            f"(mean={c.mean:.3f}, var={c.variance:.3f}, w={c.weight:.3f})"
            for c in self._components
        )
        return f"MixturePosterior(family={self._family!r}, components=[{parts}])"
