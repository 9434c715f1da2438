"""
inference
=========

Inference tiers and the dispatcher that routes between them.

MVP implementation:
- BetaBinomialConjugate : Tier 1, exact conjugate update
- NormalMixtureEM, LogNormalMixtureEM : Tier 2, Expectation-Maximization
- ZeroInflatedLogNormalVI : Tier 3, mean-field VI with Adam

All engines return a VIResult (posterior + diagnostics) and are selected
by tag through fit().
"""

from .base import Diagnostics, FitOptions, InferenceEngine, VIResult
from .conjugate import BetaBinomialConjugate
from .dispatcher import INFERENCE_ENGINES, fit, get_engine
from .em import LogNormalMixtureEM, NormalMixtureEM, kmeans_plus_plus
from .optimizer import AdamConfig, ascent_step
from .ziln import ZeroInflatedLogNormalVI

__all__ = [
    # Contract
    "InferenceEngine",
    "FitOptions",
    "Diagnostics",
    "VIResult",
    # Tiers
    "BetaBinomialConjugate",
    "NormalMixtureEM",
    "LogNormalMixtureEM",
    "ZeroInflatedLogNormalVI",
    "kmeans_plus_plus",
    # Optimizer
    "AdamConfig",
    "ascent_step",
    # Dispatcher
    "fit",
    "get_engine",
    "INFERENCE_ENGINES",
]
