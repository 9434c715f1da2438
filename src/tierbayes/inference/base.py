"""
base.py
-------

Shared contract for the inference tiers.

Defines:
- FitOptions : validated fitting configuration (prior, iterations, tolerance)
- Diagnostics : convergence report attached to every fit
- VIResult : {posterior, diagnostics} pair returned by every tier
- InferenceEngine : abstract base for the tiers

All inference engines (BetaBinomialConjugate, NormalMixtureEM,
LogNormalMixtureEM, ZeroInflatedLogNormalVI) subclass InferenceEngine
and are selected by tag through tierbayes.inference.dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from tierbayes.model.prior import PriorSpec

if TYPE_CHECKING:
    import jax

    from tierbayes.data import DataInput
    from tierbayes.posterior import BasePosterior

ProgressCallback = Callable[[int, int], None]

# Iterative tiers report progress every this many iterations.
PROGRESS_EVERY = 10


@dataclass(frozen=True)
class FitOptions:
    """
    Configuration for a single fit call.

    Attributes
    ----------
    prior_params : PriorSpec | None
        Prior family and parameters. None uses the tier default.
    max_iterations : int | None
        Iteration cap for iterative tiers. None uses the tier default.
    tolerance : float | None
        Convergence threshold. None uses the tier default.
    warm_start : bool
        Part of the contract; no current tier reuses previous state.

    Examples
    --------
    >>> FitOptions(max_iterations=200, tolerance=1e-8)
    FitOptions(prior_params=None, max_iterations=200, tolerance=1e-08, warm_start=False)
    """

    prior_params: PriorSpec | None = None
    max_iterations: int | None = None
    tolerance: float | None = None
    warm_start: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.max_iterations is not None:
            if isinstance(self.max_iterations, bool) or int(self.max_iterations) != self.max_iterations:
                raise ValueError(f"max_iterations must be an integer, got {self.max_iterations!r}")
            if self.max_iterations <= 0:
                raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
            object.__setattr__(self, "max_iterations", int(self.max_iterations))

        if self.tolerance is not None and not self.tolerance > 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")

        if isinstance(self.prior_params, Mapping):
            object.__setattr__(self, "prior_params", PriorSpec.from_mapping(self.prior_params))

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> FitOptions:
        """Build from plain data; accepts snake_case or camelCase keys."""
        if not options:
            return cls()
        prior = options.get("prior_params", options.get("priorParams"))
        return cls(
            prior_params=PriorSpec.from_mapping(prior) if prior else None,
            max_iterations=options.get("max_iterations", options.get("maxIterations")),
            tolerance=options.get("tolerance"),
            warm_start=bool(options.get("warm_start", options.get("warmStart", False))),
        )

    def resolve(self, max_iterations: int, tolerance: float) -> tuple[int, float]:
        """Return (max_iterations, tolerance), filling tier defaults for unset fields."""
        return (
            max_iterations if self.max_iterations is None else self.max_iterations,
            tolerance if self.tolerance is None else float(self.tolerance),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "prior_params": None if self.prior_params is None else self.prior_params.to_dict(),
            "max_iterations": self.max_iterations,
            "tolerance": self.tolerance,
            "warm_start": self.warm_start,
        }


@dataclass(frozen=True)
class Diagnostics:
    """
    Convergence report for a fit.

    Attributes
    ----------
    converged : bool
        True when the tolerance criterion was met (always True for the
        conjugate tier).
    iterations : int
        Number of completed iterations.
    final_elbo : float
        Final ELBO (VI), total log-likelihood (EM) or exact log-evidence
        ratio (conjugate).
    history : tuple of float | None
        One objective value per iteration.
    acceptance_rate : float | None
        Only present for compatibility with sampler-based diagnostics.
    """

    converged: bool
    iterations: int
    final_elbo: float
    history: tuple[float, ...] | None = None
    acceptance_rate: float | None = None

    @property
    def final_log_likelihood(self) -> float:
        """Alias of final_elbo, the name used by the EM tier."""
        return self.final_elbo

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "converged": self.converged,
            "iterations": self.iterations,
            "final_elbo": self.final_elbo,
        }
        if self.history is not None:
            out["history"] = list(self.history)
        if self.acceptance_rate is not None:
            out["acceptance_rate"] = self.acceptance_rate
        return out

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Diagnostics:
        history = data.get("history")
        return cls(
            converged=bool(data["converged"]),
            iterations=int(data["iterations"]),
            final_elbo=float(data["final_elbo"]),
            history=None if history is None else tuple(float(h) for h in history),
            acceptance_rate=data.get("acceptance_rate"),
        )


@dataclass(frozen=True)
class VIResult:
    """Posterior plus diagnostics, produced fresh by every fit call."""

    posterior: BasePosterior
    diagnostics: Diagnostics


class InferenceEngine(ABC):
    """
    Abstract interface for inference tiers.

    Attributes
    ----------
    model_type : str
        Dispatcher tag routed to this engine.

    Methods
    -------
    fit(data_input, options, *, key, progress) -> VIResult
        Validate data, fit parameters, and return posterior + diagnostics.
    """

    model_type: str = ""

    @abstractmethod
    def fit(
        self,
        data_input: DataInput,
        options: FitOptions | None = None,
        *,
        key: jax.Array | None = None,
        progress: ProgressCallback | None = None,
    ) -> VIResult:
        """
        Fit the model to data.

        Parameters
        ----------
        data_input : DataInput
            Standardized input.
        options : FitOptions | None
            Fitting configuration. None uses tier defaults.
        key : jax.Array | None
            PRNG key for any stochastic step. None uses seed(0).
        progress : callable(current, total) | None
            Called periodically by iterative tiers.

        Returns
        -------
        VIResult
            Posterior object and diagnostics.

        Raises
        ------
        InvalidDataError
            Before any iteration, when the data does not fit the tier.
        """
        ...
