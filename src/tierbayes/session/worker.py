"""
worker.py
---------

Execution context that runs fits and posterior queries behind a message
channel.

Protocol
--------
Requests are plain dicts ``{"id", "type", "payload"}``. For each request
the worker posts zero or more ``{"id", "type": "progress", "payload":
{"current", "total"}}`` messages followed by exactly one ``"result"`` or
``"error"`` message carrying the same id. Error payloads are
``{"kind": <exception class name>, "message": str}``.

Request types
-------------
fit               {model_type, data_input, options} -> {posterior_id, model_type, summary, diagnostics}
sample            {posterior_id, n}                 -> nested list of draws
mean, variance    {posterior_id}                    -> list
credible_interval {posterior_id, level}             -> [[lower, upper], ...]
log_prob          {posterior_id, x}                 -> float or list
get_stats         {posterior_id, levels}            -> summarize() dict
get_components    {posterior_id}                    -> [{mean, variance, weight}, ...]
clear             {posterior_id} or {}              -> {"cleared": int}

Fitted posteriors stay inside the worker, keyed by posterior_id; only
plain data crosses the channel. The worker owns one PRNG key stream and
advances it once for every fit and every sampling request.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

import numpy as np

from tierbayes.data import DataInput
from tierbayes.inference.base import FitOptions
from tierbayes.inference.dispatcher import fit
from tierbayes.posterior import DEFAULT_LEVELS, BasePosterior, MixturePosterior, summarize
from tierbayes.utils.rng import advance, seed

logger = logging.getLogger(__name__)

Message = dict[str, Any]
PostMessage = Callable[[Message], None]


class InferenceWorker:
    """
    Message handler holding fitted posteriors.

    Parameters
    ----------
    seed_value : int, default=0
        Seed of the worker's PRNG key stream.

    Notes
    -----
    handle_message is synchronous and is meant to run on a dedicated
    thread (see InferenceClient). It never raises: every failure is posted
    back as an "error" message.
    """

    def __init__(self, seed_value: int = 0):
        self._key = seed(seed_value)
        self._posteriors: dict[str, BasePosterior] = {}
        self._handlers: dict[str, Callable[[Mapping[str, Any], PostMessage], Any]] = {
            "fit": self._on_fit,
            "sample": self._on_sample,
            "mean": self._on_mean,
            "variance": self._on_variance,
            "credible_interval": self._on_credible_interval,
            "log_prob": self._on_log_prob,
            "get_stats": self._on_get_stats,
            "get_components": self._on_get_components,
            "clear": self._on_clear,
        }

    @property
    def num_posteriors(self) -> int:
        return len(self._posteriors)

    def handle_message(self, message: Mapping[str, Any], post: PostMessage) -> None:
        """Process one request and post its progress / result / error messages."""
        request_id = message.get("id")
        request_type = message.get("type")
        logger.debug("worker: request %s (%s)", request_id, request_type)

        def progress(payload: Message) -> None:
            post({"id": request_id, "type": "progress", "payload": payload})

        try:
            handler = self._handlers.get(request_type)
            if handler is None:
                raise ValueError(f"Unknown request type: {request_type!r}")
            result = handler(message.get("payload") or {}, progress)
        except Exception as exc:
            logger.debug("worker: request %s failed with %s", request_id, type(exc).__name__)
            post(
                {
                    "id": request_id,
                    "type": "error",
                    "payload": {"kind": type(exc).__name__, "message": str(exc)},
                }
            )
            return
        post({"id": request_id, "type": "result", "payload": result})

    # ------------------------------------------------------------------
    # HANDLERS
    # ------------------------------------------------------------------
    def _on_fit(self, payload, progress):
        raw = payload.get("data_input") or {}
        data_input = DataInput(data=raw.get("data"), config=raw.get("config") or {})
        options = FitOptions.from_mapping(payload.get("options"))

        def report(current: int, total: int) -> None:
            progress({"current": current, "total": total})

        result = fit(payload["model_type"], data_input, options, key=self._next_key(), progress=report)

        posterior_id = uuid.uuid4().hex
        self._posteriors[posterior_id] = result.posterior
        return {
            "posterior_id": posterior_id,
            "model_type": payload["model_type"],
            "summary": summarize(result.posterior, payload.get("levels") or DEFAULT_LEVELS),
            "diagnostics": result.diagnostics.to_dict(),
        }

    def _on_sample(self, payload, progress):
        n = payload.get("n")
        draws = self._posterior(payload).sample(None if n is None else int(n), key=self._next_key())
        return np.asarray(draws).tolist()

    def _on_mean(self, payload, progress):
        return np.asarray(self._posterior(payload).mean()).tolist()

    def _on_variance(self, payload, progress):
        return np.asarray(self._posterior(payload).variance()).tolist()

    def _on_credible_interval(self, payload, progress):
        level = float(payload.get("level", 0.95))
        return np.asarray(self._posterior(payload).credible_interval(level)).tolist()

    def _on_log_prob(self, payload, progress):
        return np.asarray(self._posterior(payload).log_prob(payload["x"])).tolist()

    def _on_get_stats(self, payload, progress):
        return summarize(self._posterior(payload), payload.get("levels") or DEFAULT_LEVELS)

    def _on_get_components(self, payload, progress):
        posterior = self._posterior(payload)
        if not isinstance(posterior, MixturePosterior):
            raise ValueError(f"{posterior.kind} posterior has no mixture components")
        return [c._asdict() for c in posterior.components]

    def _on_clear(self, payload, progress):
        posterior_id = payload.get("posterior_id")
        if posterior_id is None:
            cleared = len(self._posteriors)
            self._posteriors.clear()
        else:
            cleared = int(self._posteriors.pop(posterior_id, None) is not None)
        return {"cleared": cleared}

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------
    def _posterior(self, payload) -> BasePosterior:
        posterior_id = payload.get("posterior_id")
        try:
            return self._posteriors[posterior_id]
        except KeyError:
            raise LookupError(f"No posterior with id {posterior_id!r}") from None

    def _next_key(self):
        self._key, subkey = advance(self._key)
        return subkey
