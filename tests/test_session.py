"""
test_session.py
---------------

Tests for the asynchronous execution boundary:
- InferenceWorker message protocol
- InferenceClient request ids, error propagation, timeouts, cancellation
- PosteriorProxy cached summaries, async queries and batched sampling
"""

import asyncio
import threading

import numpy as np
import pytest

from tierbayes.exceptions import (
    InferenceTimeoutError,
    InvalidDataError,
    ProxyDisposedError,
    RequestCancelledError,
    TierBayesError,
    UnknownModelTypeError,
)
from tierbayes.inference import FitOptions
from tierbayes.model import PriorSpec
from tierbayes.posterior import MixtureComponent
from tierbayes.session import InferenceClient, InferenceWorker, PosteriorProxy, rebuild_error

pytestmark = pytest.mark.filterwarnings("ignore::tierbayes.exceptions.ConvergenceWarning")

CONVERSIONS = {"successes": 50, "trials": 100}


class GatedWorker(InferenceWorker):
    """Worker that blocks every request until its gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()

    def handle_message(self, message, post):
        self.gate.wait(timeout=10)
        super().handle_message(message, post)


def fit_payload(data=CONVERSIONS, model_type="beta-binomial"):
    return {"model_type": model_type, "data_input": {"data": data, "config": {}}, "options": {}}


class TestWorkerProtocol:
    def test_fit_posts_single_result(self):
        worker = InferenceWorker()
        replies = []
        worker.handle_message({"id": "r1", "type": "fit", "payload": fit_payload()}, replies.append)
        assert len(replies) == 1
        reply = replies[0]
        assert reply["id"] == "r1"
        assert reply["type"] == "result"
        assert reply["payload"]["model_type"] == "beta-binomial"
        assert reply["payload"]["diagnostics"]["converged"] is True
        assert worker.num_posteriors == 1

    def test_errors_are_posted_not_raised(self):
        worker = InferenceWorker()
        replies = []
        payload = fit_payload({"successes": 12, "trials": 10})
        worker.handle_message({"id": "r2", "type": "fit", "payload": payload}, replies.append)
        assert replies == [
            {
                "id": "r2",
                "type": "error",
                "payload": {
                    "kind": "InvalidDataError",
                    "message": "successes (12) cannot exceed trials (10)",
                },
            }
        ]

    def test_unknown_request_type(self):
        replies = []
        InferenceWorker().handle_message({"id": "r3", "type": "bogus"}, replies.append)
        assert replies[0]["type"] == "error"
        assert replies[0]["payload"]["kind"] == "ValueError"

    def test_progress_precedes_result(self, revenue_data):
        worker = InferenceWorker()
        replies = []
        payload = fit_payload(revenue_data, "zero-inflated-lognormal")
        payload["options"] = {"max_iterations": 20, "tolerance": 1e-300}
        worker.handle_message({"id": "r4", "type": "fit", "payload": payload}, replies.append)
        assert [r["type"] for r in replies] == ["progress", "progress", "result"]
        assert replies[0]["payload"] == {"current": 10, "total": 20}

    def test_clear_all(self):
        worker = InferenceWorker()
        for i in range(3):
            worker.handle_message({"id": str(i), "type": "fit", "payload": fit_payload()}, lambda r: None)
        replies = []
        worker.handle_message({"id": "c", "type": "clear", "payload": {}}, replies.append)
        assert replies[0]["payload"] == {"cleared": 3}
        assert worker.num_posteriors == 0


def test_rebuild_error_known_and_unknown_kinds():
    assert isinstance(rebuild_error({"kind": "InvalidDataError", "message": "x"}), InvalidDataError)
    assert isinstance(rebuild_error({"kind": "LookupError", "message": "x"}), LookupError)
    unknown = rebuild_error({"kind": "ZeroDivisionError", "message": "boom"})
    assert type(unknown) is TierBayesError
    assert "ZeroDivisionError: boom" in str(unknown)


def test_sample_timeouts():
    client = InferenceClient()
    try:
        assert client.timeout_for_sample(None) == 30.0
        assert client.timeout_for_sample(10_000) == 30.0
        assert client.timeout_for_sample(10_001) == 60.0
        assert client.fit_timeout == 300.0
    finally:
        client.close()


class TestClient:
    @pytest.mark.asyncio
    async def test_fit_returns_proxy(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            assert isinstance(proxy, PosteriorProxy)
            assert proxy.kind == "beta"
            assert proxy.diagnostics.iterations == 1
            assert client.num_pending == 0

    @pytest.mark.asyncio
    async def test_fit_with_options_object(self):
        async with InferenceClient() as client:
            options = FitOptions(prior_params=PriorSpec("beta", (2.0, 2.0)))
            proxy = await client.fit("beta-binomial", {"successes": 3, "trials": 4}, options)
            assert proxy.mean()[0] == pytest.approx(5.0 / 8.0)

    @pytest.mark.asyncio
    async def test_validation_error_rebuilt(self):
        async with InferenceClient() as client:
            with pytest.raises(InvalidDataError, match="cannot exceed"):
                await client.fit("beta-binomial", {"successes": 12, "trials": 10})

    @pytest.mark.asyncio
    async def test_unknown_model_type_rebuilt(self):
        async with InferenceClient() as client:
            with pytest.raises(UnknownModelTypeError):
                await client.fit("poisson", [1.0, 2.0])

    @pytest.mark.asyncio
    async def test_unknown_posterior_id(self):
        async with InferenceClient() as client:
            with pytest.raises(LookupError):
                await client.request("mean", {"posterior_id": "missing"})

    @pytest.mark.asyncio
    async def test_progress_callback(self, revenue_data):
        calls = []
        async with InferenceClient() as client:
            await client.fit(
                "zero-inflated-lognormal",
                revenue_data,
                {"max_iterations": 20, "tolerance": 1e-300},
                on_progress=lambda current, total: calls.append((current, total)),
            )
        assert calls == [(10, 20), (20, 20)]

    @pytest.mark.asyncio
    async def test_mixture_config_forwarded(self, two_gaussians):
        async with InferenceClient() as client:
            proxy = await client.fit("normal-mixture", two_gaussians, config={"num_components": 3})
            assert len(proxy.components()) == 3

    @pytest.mark.asyncio
    async def test_timeout_reported_and_late_reply_dropped(self):
        worker = GatedWorker()
        client = InferenceClient(worker, fit_timeout=0.05)
        try:
            with pytest.raises(InferenceTimeoutError):
                await client.fit("beta-binomial", CONVERSIONS)
            assert client.num_pending == 0

            worker.gate.set()
            proxy = await client.fit("beta-binomial", CONVERSIONS, timeout=10)
            assert proxy.mean()[0] == pytest.approx(0.5)
            # the timed-out fit still ran to completion on the worker
            assert worker.num_posteriors == 2
        finally:
            worker.gate.set()
            client.close()

    @pytest.mark.asyncio
    async def test_timeout_is_timeout_error(self):
        worker = GatedWorker()
        client = InferenceClient(worker, fit_timeout=0.01)
        try:
            with pytest.raises(TimeoutError):
                await client.fit("beta-binomial", CONVERSIONS)
        finally:
            worker.gate.set()
            client.close()

    @pytest.mark.asyncio
    async def test_cancel_discards_pending_request(self):
        worker = GatedWorker()
        client = InferenceClient(worker)
        try:
            request_id = client.submit("fit", fit_payload())
            waiter = asyncio.create_task(client.wait(request_id, timeout=10))
            await asyncio.sleep(0)
            assert client.cancel(request_id) is True
            with pytest.raises(RequestCancelledError):
                await waiter
            assert client.cancel(request_id) is False

            worker.gate.set()
            proxy = await client.fit("beta-binomial", CONVERSIONS, timeout=10)
            assert proxy.kind == "beta"
            assert worker.num_posteriors == 2
        finally:
            worker.gate.set()
            client.close()

    @pytest.mark.asyncio
    async def test_closed_client_rejects_requests(self):
        client = InferenceClient()
        client.close()
        with pytest.raises(RuntimeError):
            await client.fit("beta-binomial", CONVERSIONS)


class TestProxy:
    @pytest.mark.asyncio
    async def test_cached_summaries(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            assert proxy.mean()[0] == pytest.approx(0.5)
            assert proxy.variance().shape == (1,)
            assert proxy.cached_levels == (0.8, 0.9, 0.95)
            ci = proxy.credible_interval(0.95)
            assert ci.shape == (1, 2)
            assert ci[0, 0] < 0.5 < ci[0, 1]

    @pytest.mark.asyncio
    async def test_uncached_level_needs_async_call(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            with pytest.raises(ValueError, match="credible_interval_async"):
                proxy.credible_interval(0.5)
            ci = await proxy.credible_interval_async(0.5)
            assert ci.shape == (1, 2)
            assert ci[0, 1] - ci[0, 0] < proxy.credible_interval(0.8)[0, 1] - proxy.credible_interval(0.8)[0, 0]

    @pytest.mark.asyncio
    async def test_async_summaries_match_cache(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            np.testing.assert_allclose(await proxy.mean_async(), proxy.mean())
            np.testing.assert_allclose(await proxy.variance_async(), proxy.variance())
            log_density = await proxy.log_prob([0.5, 2.0])
            assert np.isfinite(log_density[0])
            assert log_density[1] == -np.inf

    @pytest.mark.asyncio
    async def test_sample_shapes(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            assert (await proxy.sample()).shape == (1,)
            draws = await proxy.sample(100)
            assert draws.shape == (100, 1)
            assert np.all((draws > 0) & (draws < 1))

    @pytest.mark.asyncio
    async def test_sample_batched(self):
        fractions = []
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            batches = [b async for b in proxy.sample_batched(25, batch_size=10, progress=fractions.append)]
        assert [b.shape for b in batches] == [(10, 1), (10, 1), (5, 1)]
        assert fractions == [0.4, 0.8, 1.0]
        assert not np.array_equal(batches[0], batches[1])

    @pytest.mark.asyncio
    async def test_sample_batched_mean(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            draws = np.concatenate([b async for b in proxy.sample_batched(20_000, batch_size=5_000)])
        assert draws.shape == (20_000, 1)
        se = np.sqrt(proxy.variance()[0] / 20_000)
        assert abs(draws.mean() - 0.5) < 4 * se

    @pytest.mark.asyncio
    async def test_sample_batched_rejects_bad_sizes(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            with pytest.raises(ValueError):
                [b async for b in proxy.sample_batched(10, batch_size=0)]

    @pytest.mark.asyncio
    async def test_mixture_components(self, two_gaussians):
        async with InferenceClient() as client:
            proxy = await client.fit("normal-mixture", two_gaussians)
            cached = proxy.components()
            assert all(isinstance(c, MixtureComponent) for c in cached)
            assert await proxy.components_async() == cached
            assert sum(c.weight for c in cached) == pytest.approx(1.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_components_of_non_mixture(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            with pytest.raises(ValueError):
                proxy.components()
            with pytest.raises(ValueError):
                await proxy.components_async()

    @pytest.mark.asyncio
    async def test_refresh_stats_with_new_levels(self):
        async with InferenceClient() as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            await proxy.refresh_stats(levels=[0.5])
            assert proxy.cached_levels == (0.5,)
            assert proxy.credible_interval(0.5).shape == (1, 2)
            with pytest.raises(ValueError):
                proxy.credible_interval(0.95)

    @pytest.mark.asyncio
    async def test_dispose(self):
        worker = InferenceWorker()
        async with InferenceClient(worker) as client:
            proxy = await client.fit("beta-binomial", CONVERSIONS)
            assert worker.num_posteriors == 1
            await proxy.dispose()
            assert proxy.disposed
            assert worker.num_posteriors == 0
            await proxy.dispose()
            with pytest.raises(ProxyDisposedError):
                await proxy.sample(10)
            # cached values stay readable
            assert proxy.mean()[0] == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_ziln_proxy(self, revenue_data):
        async with InferenceClient() as client:
            proxy = await client.fit("zero-inflated-lognormal", revenue_data)
            assert proxy.kind == "zero-inflated-lognormal"
            assert 0.21 <= proxy.mean()[0] <= 0.39
            assert proxy.credible_interval(0.9).shape == (3, 2)
            assert (await proxy.sample(50)).shape == (50, 3)
