"""Exception and warning classes for the tierbayes package.

All package errors inherit from TierBayesError so callers can catch every
inference failure with a single except clause. Data validation errors also
derive from ValueError, and the asynchronous timeout from TimeoutError, so
generic handlers keep working.

Taxonomy
--------
- InvalidDataError : malformed or out-of-range input, raised by the tier
  that detects it before any iteration begins.
- UnknownModelTypeError : the dispatcher was given an unrecognized tag.
- InferenceTimeoutError, RequestCancelledError, ProxyDisposedError : raised
  only at the asynchronous execution boundary (tierbayes.session).
- ConvergenceWarning : an iterative tier stopped at max_iterations. This is
  a warning, never an exception; the best-effort posterior is returned.
"""


class TierBayesError(Exception):
    """Base class for all exceptions in the tierbayes package."""


class InvalidDataError(TierBayesError, ValueError):
    """Raised when a DataInput is malformed or out of range for a tier.

    The message names the violated field and bound, e.g.
    ``"successes (12) cannot exceed trials (10)"``.
    """


class UnknownModelTypeError(TierBayesError, ValueError):
    """Raised when the dispatcher receives a model-type tag it does not know."""


class InferenceTimeoutError(TierBayesError, TimeoutError):
    """Raised when a request to the execution context exceeds its timeout.

    Timeouts are reported, never retried automatically.
    """


class RequestCancelledError(TierBayesError):
    """Raised to the awaiting caller when its pending request is discarded."""


class ProxyDisposedError(TierBayesError, RuntimeError):
    """Raised when a request is issued through a disposed posterior proxy."""


class ConvergenceWarning(UserWarning):
    """Issued when an iterative fit stops at max_iterations without converging."""
