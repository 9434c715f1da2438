"""
session
=======

Asynchronous execution boundary.

Includes:
- InferenceWorker : execution context speaking the {id, type, payload} protocol
- InferenceClient : request ids, timeouts, cancellation over a worker thread
- PosteriorProxy : cached summaries plus async / batched sampling
"""

from .client import InferenceClient, rebuild_error
from .proxy import PosteriorProxy
from .worker import InferenceWorker

__all__ = ["InferenceClient", "InferenceWorker", "PosteriorProxy", "rebuild_error"]
