"""
tierbayes
=========

Tiered Bayesian posterior approximation for business experimentation.

Given observed experiment data (conversion counts, or per-visitor values
such as revenue), tierbayes fits an approximate posterior with the
cheapest method that is adequate for the model:

----------------------------------------------------------------------
Tiers
----------------------------------------------------------------------

1. Conjugate (inference/conjugate.py):
   - "beta-binomial": exact Beta update of a conversion rate.

2. Expectation-Maximization (inference/em.py):
   - "normal-mixture": K-means++ seeded EM over Gaussian components.
   - "lognormal-mixture": the same on log-transformed positive data.

3. Variational (inference/ziln.py):
   - "zero-inflated-lognormal": mean-field Gaussian VI with analytical
     ELBO gradients and Adam (optax), for data with many exact zeros.

Every tier returns a VIResult (posterior + diagnostics). Posteriors share
one contract: mean, variance, credible_interval, sample, log_prob.

Unified import style
--------------------
Top-level:
  from tierbayes import fit, DataInput, FitOptions, PriorSpec
  from tierbayes import InferenceClient, PosteriorProxy

Subpackages:
  from tierbayes.inference import BetaBinomialConjugate, NormalMixtureEM, ZeroInflatedLogNormalVI
  from tierbayes.posterior import BetaPosterior, MixturePosterior, ZILNPosterior, summarize
  from tierbayes.utils import log_sum_exp, clip_gradient, seed, split

Data flow
---------
- DataInput.from_raw standardizes {successes, trials} or a list of values.
- fit(model_type, data_input, options, key=...) dispatches to a tier.
- For interactive hosts, InferenceClient runs fits on a worker thread and
  returns a PosteriorProxy with cached summaries and async sampling.

Numerics run in 64-bit: jax_enable_x64 is switched on at import.
----------------------------------------------------------------------
"""

import jax

jax.config.update("jax_enable_x64", True)

from . import data as data  # noqa: E402
from . import inference as inference  # noqa: E402
from . import model as model  # noqa: E402
from . import posterior as posterior  # noqa: E402
from . import session as session  # noqa: E402
from . import utils as utils  # noqa: E402
from .data.dataset import BinomialSummary, DataInput  # noqa: E402
from .exceptions import (  # noqa: E402
    ConvergenceWarning,
    InferenceTimeoutError,
    InvalidDataError,
    ProxyDisposedError,
    RequestCancelledError,
    TierBayesError,
    UnknownModelTypeError,
)

# Inference
from .inference.base import Diagnostics, FitOptions, VIResult  # noqa: E402
from .inference.dispatcher import INFERENCE_ENGINES, fit  # noqa: E402
from .model.prior import PriorSpec  # noqa: E402

# Posterior
from .posterior import (  # noqa: E402
    BasePosterior,
    BetaPosterior,
    MixturePosterior,
    ZILNPosterior,
    summarize,
)

# Execution boundary
from .session import InferenceClient, InferenceWorker, PosteriorProxy  # noqa: E402

__all__ = [
    # Entry point
    "fit",
    "INFERENCE_ENGINES",
    # Inputs and configuration
    "DataInput",
    "BinomialSummary",
    "FitOptions",
    "PriorSpec",
    # Results
    "VIResult",
    "Diagnostics",
    "BasePosterior",
    "BetaPosterior",
    "MixturePosterior",
    "ZILNPosterior",
    "summarize",
    # Execution boundary
    "InferenceClient",
    "InferenceWorker",
    "PosteriorProxy",
    # Errors
    "TierBayesError",
    "InvalidDataError",
    "UnknownModelTypeError",
    "InferenceTimeoutError",
    "RequestCancelledError",
    "ProxyDisposedError",
    "ConvergenceWarning",
    # Subpackages
    "data",
    "inference",
    "model",
    "posterior",
    "session",
    "utils",
]
