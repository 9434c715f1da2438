"""
posterior
=========

Posterior representations returned by the inference tiers.

This subpackage provides:
- BasePosterior: common contract (mean, variance, sample, credible_interval, log_prob)
- BetaPosterior: exact conjugate result (Tier 1)
- MixturePosterior, MixtureComponent: EM result (Tier 2)
- ZILNPosterior, ZILNParams: gradient VI result (Tier 3)
- summarize: plain-data summaries cached by the session proxy
"""

from .base_posterior import BasePosterior
from .beta_posterior import BetaPosterior
from .mixture_posterior import MixtureComponent, MixturePosterior
from .summary import DEFAULT_LEVELS, summarize
from .ziln_posterior import ZILNParams, ZILNPosterior

__all__ = [
    # Core contract
    "BasePosterior",
    # Implementations
    "BetaPosterior",
    "MixturePosterior",
    "MixtureComponent",
    "ZILNPosterior",
    "ZILNParams",
    # Summaries
    "summarize",
    "DEFAULT_LEVELS",
]
