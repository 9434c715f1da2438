"""
client.py
---------

Caller-side end of the worker message channel.

InferenceClient runs an InferenceWorker on a single background thread and
correlates its replies with asyncio futures by request id. The worker is
never interrupted: cancelling or timing out a request only removes it
from the pending table, and any late reply carrying that id is dropped.

Examples
--------
>>> async def main():
...     async with InferenceClient() as client:
...         proxy = await client.fit("beta-binomial", {"successes": 50, "trials": 100})
...         return proxy.mean()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from tierbayes.data import DataInput
from tierbayes.exceptions import (
    InferenceTimeoutError,
    InvalidDataError,
    ProxyDisposedError,
    RequestCancelledError,
    TierBayesError,
    UnknownModelTypeError,
)
from tierbayes.inference.base import FitOptions
from tierbayes.session.proxy import PosteriorProxy
from tierbayes.session.worker import InferenceWorker, Message

logger = logging.getLogger(__name__)

FIT_TIMEOUT = 300.0
SAMPLE_TIMEOUT = 30.0
LARGE_SAMPLE_TIMEOUT = 60.0
# Sampling requests above this many draws get LARGE_SAMPLE_TIMEOUT.
LARGE_SAMPLE_THRESHOLD = 10_000

# Error kinds the worker may report, rebuilt as the same class on this side.
_ERROR_TYPES: dict[str, type[Exception]] = {
    cls.__name__: cls
    for cls in (
        TierBayesError,
        InvalidDataError,
        UnknownModelTypeError,
        InferenceTimeoutError,
        RequestCancelledError,
        ProxyDisposedError,
        ValueError,
        TypeError,
        LookupError,
        KeyError,
        IndexError,
    )
}


@dataclass
class _PendingRequest:
    request_type: str
    future: asyncio.Future
    on_progress: Callable[[int, int], None] | None = None


def rebuild_error(payload: Mapping[str, Any]) -> Exception:
    """Turn an error payload back into an exception instance."""
    kind = payload.get("kind", "TierBayesError")
    message = payload.get("message", "")
    error_type = _ERROR_TYPES.get(kind)
    if error_type is None:
        return TierBayesError(f"{kind}: {message}")
    return error_type(message)


class InferenceClient:
    """
    Asynchronous request/response client for an InferenceWorker.

    Parameters
    ----------
    worker : InferenceWorker | None
        Execution context. None creates InferenceWorker().
    fit_timeout : float, default=300
        Seconds before a fit request fails with InferenceTimeoutError.
    sample_timeout : float, default=30
        Timeout for sampling and other posterior queries.
    large_sample_timeout : float, default=60
        Timeout for sampling more than 10000 draws at once.
    """

    def __init__(
        self,
        worker: InferenceWorker | None = None,
        *,
        fit_timeout: float = FIT_TIMEOUT,
        sample_timeout: float = SAMPLE_TIMEOUT,
        large_sample_timeout: float = LARGE_SAMPLE_TIMEOUT,
    ):
        self.worker = worker or InferenceWorker()
        self.fit_timeout = fit_timeout
        self.sample_timeout = sample_timeout
        self.large_sample_timeout = large_sample_timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tierbayes-worker")
        self._pending: dict[str, _PendingRequest] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # REQUESTS
    # ------------------------------------------------------------------
    def submit(
        self,
        request_type: str,
        payload: Mapping[str, Any] | None = None,
        *,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> str:
        """
        Post a request to the worker without waiting for it.

        Must be called from a running event loop. Returns the request id,
        to be passed to wait() or cancel().
        """
        if self._closed:
            raise RuntimeError("InferenceClient is closed")
        loop = asyncio.get_running_loop()
        request_id = uuid.uuid4().hex
        self._pending[request_id] = _PendingRequest(request_type, loop.create_future(), on_progress)

        def post(reply: Message) -> None:
            try:
                loop.call_soon_threadsafe(self._dispatch, reply)
            except RuntimeError:
                logger.debug("event loop closed; dropping reply to %s", reply.get("id"))

        message = {"id": request_id, "type": request_type, "payload": dict(payload or {})}
        self._executor.submit(self.worker.handle_message, message, post)
        logger.debug("submitted %s request %s", request_type, request_id)
        return request_id

    async def wait(self, request_id: str, timeout: float | None = None) -> Any:
        """
        Await the result of a submitted request.

        Raises
        ------
        InferenceTimeoutError
            If no result arrives within timeout seconds. The request is
            dropped; the worker keeps running it.
        RequestCancelledError
            If the request was cancelled, or the client closed, meanwhile.
        """
        pending = self._pending.get(request_id)
        if pending is None:
            raise RequestCancelledError(f"Request {request_id} is not pending")
        try:
            return await asyncio.wait_for(asyncio.shield(pending.future), timeout)
        except asyncio.TimeoutError:
            raise InferenceTimeoutError(
                f"{pending.request_type} request {request_id} timed out after {timeout} s"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    async def request(
        self,
        request_type: str,
        payload: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> Any:
        """submit() followed by wait(); timeout defaults to sample_timeout."""
        request_id = self.submit(request_type, payload, on_progress=on_progress)
        return await self.wait(request_id, self.sample_timeout if timeout is None else timeout)

    def cancel(self, request_id: str) -> bool:
        """
        Discard a pending request.

        The awaiting caller receives RequestCancelledError and the eventual
        worker reply is ignored. Returns False when the request is unknown
        or already finished.
        """
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return False
        pending.future.set_exception(RequestCancelledError(f"Request {request_id} was cancelled"))
        logger.debug("cancelled %s request %s", pending.request_type, request_id)
        return True

    @property
    def num_pending(self) -> int:
        return len(self._pending)

    def timeout_for_sample(self, n: int | None) -> float:
        if n is not None and n > LARGE_SAMPLE_THRESHOLD:
            return self.large_sample_timeout
        return self.sample_timeout

    # ------------------------------------------------------------------
    # FIT
    # ------------------------------------------------------------------
    async def fit(
        self,
        model_type: str,
        data,
        options: FitOptions | Mapping[str, Any] | None = None,
        *,
        config: Mapping[str, Any] | None = None,
        on_progress: Callable[[int, int], None] | None = None,
        timeout: float | None = None,
    ) -> PosteriorProxy:
        """
        Fit a model on the worker.

        Parameters
        ----------
        model_type : str
            Dispatcher tag.
        data : DataInput | Mapping | sequence of float
            Observations or a {successes, trials} summary.
        options : FitOptions | Mapping | None
            Fitting configuration.
        config : Mapping | None
            DataInput config (e.g. num_components) when data is not a DataInput.
        on_progress : callable(current, total) | None
            Called with iteration progress of iterative tiers.
        timeout : float | None
            Overrides fit_timeout.

        Returns
        -------
        PosteriorProxy
            Proxy with the summaries cached.
        """
        if isinstance(options, FitOptions):
            options = options.to_dict()
        payload = {
            "model_type": model_type,
            "data_input": DataInput.from_raw(data, config).to_dict(),
            "options": dict(options or {}),
        }
        result = await self.request(
            "fit",
            payload,
            timeout=self.fit_timeout if timeout is None else timeout,
            on_progress=on_progress,
        )
        return PosteriorProxy(
            self,
            posterior_id=result["posterior_id"],
            model_type=result["model_type"],
            summary=result["summary"],
            diagnostics=result["diagnostics"],
        )

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------
    def close(self, wait: bool = False) -> None:
        """Cancel every pending request and stop the worker thread. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for request_id in list(self._pending):
            self.cancel(request_id)
        self._executor.shutdown(wait=wait, cancel_futures=True)

    async def __aenter__(self) -> InferenceClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()

    def _dispatch(self, reply: Message) -> None:
        request_id = reply.get("id")
        pending = self._pending.get(request_id)
        if pending is None or pending.future.done():
            logger.debug("dropping stale %s reply for %s", reply.get("type"), request_id)
            return

        reply_type = reply.get("type")
        payload = reply.get("payload")
        if reply_type == "progress":
            if pending.on_progress is not None:
                pending.on_progress(payload["current"], payload["total"])
        elif reply_type == "result":
            pending.future.set_result(payload)
        elif reply_type == "error":
            pending.future.set_exception(rebuild_error(payload or {}))
        else:
            logger.debug("ignoring reply of unknown type %r for %s", reply_type, request_id)
