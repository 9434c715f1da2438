"""
summary.py
----------

Plain-data posterior summaries.

summarize() evaluates the cheap, pre-computable queries of a posterior
(mean, variance, a fixed set of credible intervals, mixture components)
once and returns them as lists and floats. The execution context sends
this dict across the message channel, and PosteriorProxy serves the
synchronous queries from it without another round trip.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from tierbayes.posterior.base_posterior import BasePosterior
from tierbayes.posterior.mixture_posterior import MixturePosterior

# Credible-interval levels cached by default.
DEFAULT_LEVELS = (0.8, 0.9, 0.95)


def summarize(posterior: BasePosterior, levels=DEFAULT_LEVELS) -> dict[str, Any]:
    """
    Evaluate the cacheable summaries of a posterior.

    Parameters
    ----------
    posterior : BasePosterior
        Fitted posterior.
    levels : sequence of float, default=(0.8, 0.9, 0.95)
        Credible-interval levels to precompute.

    Returns
    -------
    dict
        {
          "kind": str,
          "mean": list[float],
          "variance": list[float],
          "intervals": {level: [[lower, upper], ...]},
          "components": [{"mean", "variance", "weight"}, ...]   # mixtures only
          "expected_value": float                               # mixtures only
        }
    """
    summary: dict[str, Any] = {
        "kind": posterior.kind,
        "mean": np.asarray(posterior.mean()).tolist(),
        "variance": np.asarray(posterior.variance()).tolist(),
        "intervals": {
            float(level): np.asarray(posterior.credible_interval(level)).tolist()
            for level in levels
        },
    }
    if isinstance(posterior, MixturePosterior):
        summary["components"] = [c._asdict() for c in posterior.components]
        summary["expected_value"] = posterior.expected_value()
    return summary
