"""
dispatcher.py
-------------

Single entry point routing a model-type tag to its inference tier.

    "beta-binomial"            -> BetaBinomialConjugate   (Tier 1, exact)
    "normal-mixture"           -> NormalMixtureEM         (Tier 2, EM)
    "lognormal-mixture"        -> LogNormalMixtureEM      (Tier 2, EM on log data)
    "zero-inflated-lognormal"  -> ZeroInflatedLogNormalVI (Tier 3, gradient VI)

A fresh engine is constructed for every call, so no state is shared
between requests.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from tierbayes.data import DataInput
from tierbayes.exceptions import UnknownModelTypeError
from tierbayes.inference.base import FitOptions, InferenceEngine, VIResult
from tierbayes.inference.conjugate import BetaBinomialConjugate
from tierbayes.inference.em import LogNormalMixtureEM, NormalMixtureEM
from tierbayes.inference.ziln import ZeroInflatedLogNormalVI

logger = logging.getLogger(__name__)

INFERENCE_ENGINES: dict[str, type[InferenceEngine]] = {
    engine.model_type: engine
    for engine in (
        BetaBinomialConjugate,
        NormalMixtureEM,
        LogNormalMixtureEM,
        ZeroInflatedLogNormalVI,
    )
}


def get_engine(model_type: str) -> InferenceEngine:
    """
    Construct the engine registered under a tag.

    Raises
    ------
    UnknownModelTypeError
        If the tag is not registered.
    """
    try:
        engine_cls = INFERENCE_ENGINES[model_type]
    except (KeyError, TypeError):
        known = ", ".join(sorted(INFERENCE_ENGINES))
        raise UnknownModelTypeError(f"Unknown model type: {model_type!r} (known: {known})") from None
    return engine_cls()


def fit(model_type: str, data_input, options=None, *, key=None, progress=None) -> VIResult:
    """
    Fit a model by tag.

    Parameters
    ----------
    model_type : str
        One of the INFERENCE_ENGINES tags.
    data_input : DataInput | Mapping | sequence of float
        Standardized with DataInput.from_raw.
    options : FitOptions | Mapping | None
        Fitting configuration; a mapping is parsed with FitOptions.from_mapping.
    key : jax.Array | None
        PRNG key for stochastic steps. None uses seed(0).
    progress : callable(current, total) | None
        Forwarded to iterative tiers.

    Returns
    -------
    VIResult

    Examples
    --------
    >>> result = fit("beta-binomial", {"successes": 50, "trials": 100})
    >>> float(result.posterior.mean()[0])
    0.5
    """
    engine = get_engine(model_type)
    data_input = DataInput.from_raw(data_input)
    if options is None or isinstance(options, Mapping):
        options = FitOptions.from_mapping(options)

    logger.debug("dispatching %s to %s", model_type, type(engine).__name__)
    return engine.fit(data_input, options, key=key, progress=progress)
