"""
conjugate.py
------------

Tier 1: exact conjugate Beta-Binomial update.

Uses a Beta(alpha0, beta0) prior (uniform Beta(1, 1) by default). The
posterior is Beta(alpha0 + successes, beta0 + trials - successes), with no
iteration and no randomness. The reported ELBO is the exact log-evidence
ratio log B(alpha, beta) - log B(alpha0, beta0).
"""

from __future__ import annotations

import logging
import numbers

from tierbayes.data import BinomialSummary, DataInput
from tierbayes.exceptions import InvalidDataError
from tierbayes.inference.base import Diagnostics, FitOptions, InferenceEngine, VIResult
from tierbayes.model.prior import PriorSpec
from tierbayes.posterior.beta_posterior import BetaPosterior
from tierbayes.utils.math import log_beta

logger = logging.getLogger(__name__)


class BetaBinomialConjugate(InferenceEngine):
    """
    Conjugate Beta-Binomial model for conversion rate estimation.

    Parameters
    ----------
    prior : PriorSpec | None
        Default prior when FitOptions carries none. None means Beta(1, 1).

    Notes
    -----
    A prior in FitOptions of a family other than "beta" is ignored and the
    default prior is used.
    """

    model_type = "beta-binomial"

    def __init__(self, prior: PriorSpec | None = None):
        self.prior = prior or PriorSpec.uniform_beta()

    def fit(self, data_input: DataInput, options: FitOptions | None = None, *, key=None, progress=None) -> VIResult:
        """
        Exact posterior update.

        Parameters
        ----------
        data_input : DataInput
            Must hold a BinomialSummary.
        options : FitOptions | None
            Only prior_params is read.

        Returns
        -------
        VIResult
            BetaPosterior with converged=True and iterations=1.

        Raises
        ------
        InvalidDataError
            If the data is not a summary, or successes/trials are out of range.
        """
        options = options or FitOptions()
        prior_alpha, prior_beta = self._prior(options).beta_params()
        successes, trials = self._validate(data_input)

        posterior_alpha = prior_alpha + successes
        posterior_beta = prior_beta + (trials - successes)

        elbo = float(log_beta(posterior_alpha, posterior_beta) - log_beta(prior_alpha, prior_beta))
        logger.debug(
            "beta-binomial update: %d/%d -> Beta(%g, %g)", successes, trials, posterior_alpha, posterior_beta
        )

        return VIResult(
            posterior=BetaPosterior(posterior_alpha, posterior_beta),
            diagnostics=Diagnostics(converged=True, iterations=1, final_elbo=elbo),
        )

    def _prior(self, options: FitOptions) -> PriorSpec:
        if options.prior_params is not None and options.prior_params.family == "beta":
            return options.prior_params
        return self.prior

    @staticmethod
    def _validate(data_input: DataInput) -> tuple[int, int]:
        data = data_input.data
        if not isinstance(data, BinomialSummary):
            raise InvalidDataError("Beta-Binomial requires {successes, trials} data format")

        counts = {}
        for name in ("successes", "trials"):
            value = getattr(data, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not float(value).is_integer():
                raise InvalidDataError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidDataError(f"{name} must be non-negative, got {value}")
            counts[name] = int(value)

        if counts["successes"] > counts["trials"]:
            raise InvalidDataError(
                f"successes ({counts['successes']}) cannot exceed trials ({counts['trials']})"
            )
        return counts["successes"], counts["trials"]
