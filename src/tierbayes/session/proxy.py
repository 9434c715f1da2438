"""
proxy.py
--------

Caller-facing handle to a posterior that lives in the worker.

Cheap summaries (mean, variance, credible intervals at 0.8 / 0.9 / 0.95,
mixture components) are cached when the fit completes and are read
synchronously. Everything else (sampling, other interval levels, log
densities) is an asynchronous request through the owning client.

Large sample requests can be split with sample_batched(), which yields one
array per chunk and returns control to the event loop in between. Batching
does not change the distribution of the draws.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import TYPE_CHECKING, Any

import numpy as np

from tierbayes.exceptions import ProxyDisposedError
from tierbayes.inference.base import Diagnostics
from tierbayes.posterior.mixture_posterior import MixtureComponent

if TYPE_CHECKING:
    from tierbayes.session.client import InferenceClient

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000


class PosteriorProxy:
    """
    Cached, asynchronous view of a worker-side posterior.

    Parameters
    ----------
    client : InferenceClient
        Client owning the worker connection.
    posterior_id : str
        Worker-side handle of the posterior.
    model_type : str
        Dispatcher tag the posterior was fitted with.
    summary : Mapping
        Output of summarize() computed by the worker.
    diagnostics : Mapping
        Diagnostics.to_dict() of the fit.
    """

    def __init__(
        self,
        client: InferenceClient,
        posterior_id: str,
        model_type: str,
        summary: Mapping[str, Any],
        diagnostics: Mapping[str, Any],
    ):
        self._client = client
        self.posterior_id = posterior_id
        self.model_type = model_type
        self.diagnostics = Diagnostics.from_mapping(diagnostics)
        self._disposed = False
        self._cache: dict[str, Any] = {}
        self._store(summary)

    # ------------------------------------------------------------------
    # CACHED (synchronous)
    # ------------------------------------------------------------------
    @property
    def kind(self) -> str:
        return self._cache["kind"]

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def cached_levels(self) -> tuple[float, ...]:
        return tuple(sorted(self._cache["intervals"]))

    def mean(self) -> np.ndarray:
        return self._cache["mean"]

    def variance(self) -> np.ndarray:
        return self._cache["variance"]

    def credible_interval(self, level: float = 0.95) -> np.ndarray:
        """
        Cached credible interval.

        Raises
        ------
        ValueError
            If level is not one of cached_levels; use credible_interval_async.
        """
        try:
            return self._cache["intervals"][float(level)]
        except KeyError:
            raise ValueError(
                f"Credible interval at level {level} is not cached "
                f"(cached: {self.cached_levels}); use credible_interval_async"
            ) from None

    def components(self) -> tuple[MixtureComponent, ...]:
        """Cached mixture components; ValueError for non-mixture posteriors."""
        components = self._cache.get("components")
        if components is None:
            raise ValueError(f"{self.kind} posterior has no mixture components")
        return components

    # ------------------------------------------------------------------
    # ASYNCHRONOUS
    # ------------------------------------------------------------------
    async def sample(self, n: int | None = None, *, timeout: float | None = None) -> np.ndarray:
        """Draw n samples in one request; shape (d,) when n is None, else (n, d)."""
        if timeout is None:
            timeout = self._client.timeout_for_sample(n)
        draws = await self._request("sample", {"n": n}, timeout=timeout)
        return np.asarray(draws, dtype=float)

    async def sample_batched(
        self,
        n: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress: Callable[[float], None] | None = None,
    ) -> AsyncIterator[np.ndarray]:
        """
        Draw n samples in chunks of at most batch_size.

        Yields one (size, d) array per chunk. progress, when given, receives
        the fraction of draws completed after each chunk.
        """
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        drawn = 0
        while drawn < n:
            size = min(batch_size, n - drawn)
            batch = await self.sample(size)
            drawn += size
            if progress is not None:
                progress(drawn / n)
            yield batch
            await asyncio.sleep(0)

    async def mean_async(self) -> np.ndarray:
        return np.asarray(await self._request("mean"), dtype=float)

    async def variance_async(self) -> np.ndarray:
        return np.asarray(await self._request("variance"), dtype=float)

    async def credible_interval_async(self, level: float = 0.95) -> np.ndarray:
        return np.asarray(await self._request("credible_interval", {"level": float(level)}), dtype=float)

    async def log_prob(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float).tolist()
        return np.asarray(await self._request("log_prob", {"x": x}), dtype=float)

    async def components_async(self) -> tuple[MixtureComponent, ...]:
        raw = await self._request("get_components")
        return tuple(MixtureComponent(**c) for c in raw)

    async def refresh_stats(self, levels=None) -> None:
        """Recompute the cached summaries, optionally at other interval levels."""
        payload = {} if levels is None else {"levels": [float(level) for level in levels]}
        self._store(await self._request("get_stats", payload))

    async def dispose(self) -> None:
        """Release the worker-side posterior. Later requests raise ProxyDisposedError."""
        if self._disposed:
            return
        await self._request("clear")
        self._disposed = True
        logger.debug("disposed posterior %s", self.posterior_id)

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------
    async def _request(self, request_type: str, payload=None, *, timeout: float | None = None):
        if self._disposed:
            raise ProxyDisposedError(f"Posterior {self.posterior_id} has been disposed")
        payload = {**(payload or {}), "posterior_id": self.posterior_id}
        return await self._client.request(request_type, payload, timeout=timeout)

    def _store(self, summary: Mapping[str, Any]) -> None:
        cache: dict[str, Any] = {
            "kind": summary["kind"],
            "mean": np.asarray(summary["mean"], dtype=float),
            "variance": np.asarray(summary["variance"], dtype=float),
            "intervals": {
                float(level): np.asarray(bounds, dtype=float)
                for level, bounds in summary["intervals"].items()
            },
        }
        if "components" in summary:
            cache["components"] = tuple(MixtureComponent(**c) for c in summary["components"])
        self._cache = cache

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "live"
        return f"PosteriorProxy(id={self.posterior_id!r}, model_type={self.model_type!r}, {state})"
