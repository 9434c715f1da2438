"""
prior.py
--------

Prior specifications for the inference tiers.

MVP implementation:
- Beta prior over a conversion rate, consumed by the conjugate tier.
- "normal", "gamma" and "dirichlet" families are accepted and carried in
  FitOptions so callers can describe priors uniformly; tiers that cannot
  use a family fall back to their own default.

Connections
-----------
- FitOptions.prior_params holds a PriorSpec.
- BetaBinomialConjugate reads PriorSpec.beta_params() when family == "beta".
- The ZILN tier uses fixed standard-normal priors on its variational
  parameters (see inference/ziln.py) and ignores PriorSpec.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from tierbayes.exceptions import InvalidDataError

PriorFamily = Literal["beta", "normal", "gamma", "dirichlet"]

_FAMILIES = ("beta", "normal", "gamma", "dirichlet")


@dataclass(frozen=True)
class PriorSpec:
    """
    Prior distribution family and its parameters.

    Parameters
    ----------
    family : {"beta", "normal", "gamma", "dirichlet"}, default="beta"
        Distribution family.
    params : tuple of float, default=(1.0, 1.0)
        Family parameters, e.g. (alpha, beta) for "beta".

    Examples
    --------
    >>> PriorSpec.uniform_beta().beta_params()
    (1.0, 1.0)
    >>> PriorSpec("beta", (2, 8)).beta_params()
    (2.0, 8.0)
    """

    family: PriorFamily = "beta"
    params: tuple[float, ...] = (1.0, 1.0)

    def __post_init__(self):
        """Validate family and coerce params."""
        if self.family not in _FAMILIES:
            raise ValueError(f"Unknown prior family '{self.family}', expected one of {_FAMILIES}")
        params = tuple(float(p) for p in self.params)
        object.__setattr__(self, "params", params)

        if self.family == "beta":
            if len(params) != 2:
                raise InvalidDataError(f"beta prior needs 2 params (alpha, beta), got {len(params)}")
            if params[0] <= 0 or params[1] <= 0:
                raise InvalidDataError(
                    f"beta prior params must be positive, got alpha={params[0]}, beta={params[1]}"
                )

    @classmethod
    def uniform_beta(cls) -> PriorSpec:
        """Beta(1, 1): uniform over the conversion rate."""
        return cls(family="beta", params=(1.0, 1.0))

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Any]) -> PriorSpec:
        """Build from ``{"family" | "type": ..., "params": [...]}`` plain data."""
        family = spec.get("family", spec.get("type", "beta"))
        return cls(family=family, params=tuple(spec.get("params", (1.0, 1.0))))

    def beta_params(self) -> tuple[float, float]:
        """Return (alpha, beta); only valid for the beta family."""
        if self.family != "beta":
            raise ValueError(f"beta_params() requires family 'beta', got '{self.family}'")
        return self.params[0], self.params[1]

    def to_dict(self) -> dict[str, Any]:
        return {"family": self.family, "params": list(self.params)}
