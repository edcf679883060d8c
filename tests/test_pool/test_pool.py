"""Tests for steadyhttp.pool -- bounded-concurrency batches and reject handling."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from steadyhttp.client import AsyncHttpClient
from steadyhttp.client.response import status_handler
from steadyhttp.exceptions import AggregateBatchError, InvalidArgumentError, ResponseError
from steadyhttp.pool import BatchHandle, ConcurrentRequestPool, RejectDecision


BASE = "https://api.example.com"
FAST = {"retry_limit": 0, "backoff_factor": 0, "handler": status_handler}


class ConcurrencyTracker:
    """Async MockTransport handler that tracks how many requests overlap."""

    def __init__(self, delay: float = 0.01, failing: frozenset[str] = frozenset()) -> None:
        self.delay = delay
        self.failing = failing
        self.in_flight = 0
        self.peak = 0
        self.paths: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.paths.append(request.url.path)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if request.url.path in self.failing:
            return httpx.Response(503)
        return httpx.Response(200, json={"path": request.url.path})


def _batch(tracker, requests, options=None, **kwargs):
    async def main():
        async with AsyncHttpClient(FAST, transport=httpx.MockTransport(tracker)) as client:
            return await client.request_pool("GET", requests, options, **kwargs)

    return asyncio.run(main())


def _urls(count: int) -> dict[str, str]:
    return {f"r{i}": f"{BASE}/{i}" for i in range(count)}


# ------------------------------------------------------------------ #
# Results and keys
# ------------------------------------------------------------------ #


class TestResults:
    def test_all_keys_succeed(self) -> None:
        results = _batch(ConcurrencyTracker(), _urls(5), concurrency=2)
        assert results == {f"r{i}": 200 for i in range(5)}

    def test_sequence_is_keyed_by_position(self) -> None:
        results = _batch(ConcurrencyTracker(), [f"{BASE}/a", f"{BASE}/b"])
        assert results == {0: 200, 1: 200}

    def test_mixed_string_and_int_keys(self) -> None:
        requests = {"first": f"{BASE}/a", 7: f"{BASE}/b", "last": f"{BASE}/c"}
        results = _batch(ConcurrencyTracker(), requests, concurrency=2)
        assert set(results) == {"first", 7, "last"}

    def test_per_request_options(self) -> None:
        requests = {
            "plain": f"{BASE}/a",
            "json": {"url": f"{BASE}/b", "handler": "steadyhttp.client.response.json_handler"},
        }
        results = _batch(ConcurrencyTracker(), requests)
        assert results["plain"] == 200
        assert results["json"] == {"path": "/b"}

    def test_shared_options_apply_to_every_request(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("X-Batch", ""))
            return httpx.Response(200)

        async def main():
            async with AsyncHttpClient(FAST, transport=httpx.MockTransport(handler)) as client:
                return await client.request_pool(
                    "GET", _urls(3), {"headers": {"X-Batch": "yes"}}
                )

        asyncio.run(main())
        assert seen == ["yes", "yes", "yes"]

    def test_empty_batch(self) -> None:
        assert _batch(ConcurrencyTracker(), {}) == {}


# ------------------------------------------------------------------ #
# Concurrency ceiling
# ------------------------------------------------------------------ #


class TestConcurrency:
    @pytest.mark.parametrize("limit", [1, 2, 3])
    def test_in_flight_never_exceeds_limit(self, limit: int) -> None:
        tracker = ConcurrencyTracker()
        _batch(tracker, _urls(8), concurrency=limit)
        assert tracker.peak == limit
        assert len(tracker.paths) == 8

    def test_limit_above_batch_size(self) -> None:
        tracker = ConcurrencyTracker()
        _batch(tracker, _urls(3), concurrency=50)
        assert tracker.peak == 3

    @pytest.mark.parametrize("limit", [0, -1, 1.5, True, "2"])
    def test_invalid_concurrency(self, limit) -> None:
        with pytest.raises(InvalidArgumentError):
            _batch(ConcurrencyTracker(), _urls(2), concurrency=limit)


# ------------------------------------------------------------------ #
# Failure policy
# ------------------------------------------------------------------ #


class TestReject:
    def test_swallow_drops_failed_keys(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/1", "/4"}))
        rejected: list[tuple[str, int]] = []

        def on_reject(error, key, handle):
            assert isinstance(handle, BatchHandle)
            rejected.append((key, error.status_code))
            return RejectDecision.SWALLOW

        results = _batch(tracker, _urls(6), concurrency=2, on_reject=on_reject)
        assert set(results) == {"r0", "r2", "r3", "r5"}
        assert sorted(rejected) == [("r1", 503), ("r4", 503)]

    def test_returning_none_swallows(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))
        results = _batch(tracker, _urls(3), on_reject=lambda error, key, handle: None)
        assert set(results) == {"r1", "r2"}

    def test_async_callback(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))

        async def on_reject(error, key, handle):
            await asyncio.sleep(0)
            return RejectDecision.SWALLOW

        assert set(_batch(tracker, _urls(2), on_reject=on_reject)) == {"r1"}

    def test_default_aborts(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/2"}))
        with pytest.raises(AggregateBatchError) as excinfo:
            _batch(tracker, _urls(6), concurrency=2)
        assert excinfo.value.key == "r2"
        assert isinstance(excinfo.value.error, ResponseError)
        assert excinfo.value.exit_code == 8

    def test_abort_decision(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/1"}))
        with pytest.raises(AggregateBatchError, match="Batch aborted by request 'r1'"):
            _batch(
                tracker, _urls(4), concurrency=1,
                on_reject=lambda error, key, handle: RejectDecision.ABORT,
            )

    def test_handle_abort_and_progress(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/2"}))
        seen = {}

        def on_reject(error, key, handle):
            seen["results"] = handle.results
            seen["failed"] = handle.failed
            seen["pending"] = handle.pending
            handle.abort()

        with pytest.raises(AggregateBatchError):
            _batch(tracker, _urls(5), concurrency=1, on_reject=on_reject)
        assert seen["results"] == {"r0": 200, "r1": 200}
        assert seen["failed"] == ["r2"]
        assert seen["pending"] == 2

    def test_abort_stops_dispatching(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))
        with pytest.raises(AggregateBatchError):
            _batch(tracker, _urls(6), concurrency=1)
        assert tracker.paths == ["/0"]

    def test_callback_exception_aborts(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))

        def on_reject(error, key, handle):
            raise RuntimeError("callback failed")

        with pytest.raises(AggregateBatchError) as excinfo:
            _batch(tracker, _urls(2), on_reject=on_reject)
        assert isinstance(excinfo.value.error, RuntimeError)

    def test_any_other_return_value_swallows(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))
        errors: dict[str, Exception] = {}
        results = _batch(
            tracker, _urls(2), on_reject=lambda error, key, handle: errors.setdefault(key, error)
        )
        assert results == {"r1": 200}
        assert isinstance(errors["r0"], ResponseError)

    def test_abort_string_value_aborts(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))
        with pytest.raises(AggregateBatchError):
            _batch(tracker, _urls(2), on_reject=lambda error, key, handle: "abort")

    def test_handle_abort_reports_given_error(self) -> None:
        tracker = ConcurrencyTracker(failing=frozenset({"/0"}))

        def on_reject(error, key, handle):
            handle.abort(ValueError("quota exhausted"))

        with pytest.raises(AggregateBatchError, match="quota exhausted") as excinfo:
            _batch(tracker, _urls(2), on_reject=on_reject)
        assert excinfo.value.key == "r0"


# ------------------------------------------------------------------ #
# Request entries
# ------------------------------------------------------------------ #


class TestEntries:
    def test_missing_url(self) -> None:
        with pytest.raises(InvalidArgumentError, match="has no url"):
            _batch(ConcurrencyTracker(), {"a": {"timeout": 1}})

    def test_bad_key_type(self) -> None:
        with pytest.raises(InvalidArgumentError, match="batch keys"):
            _batch(ConcurrencyTracker(), {1.5: f"{BASE}/a"})

    def test_requests_must_be_collection(self) -> None:
        with pytest.raises(InvalidArgumentError):
            _batch(ConcurrencyTracker(), f"{BASE}/a")

    def test_invalid_per_request_option(self) -> None:
        with pytest.raises(InvalidArgumentError, match="Unknown request option"):
            _batch(ConcurrencyTracker(), {"a": {"url": f"{BASE}/a", "verify": False}})

    def test_pool_can_be_used_directly(self) -> None:
        async def main():
            async with AsyncHttpClient(
                FAST, transport=httpx.MockTransport(ConcurrencyTracker())
            ) as client:
                pool = ConcurrentRequestPool(client._executor)
                return await pool.run_all("GET", [f"{BASE}/x"], client.config)

        assert asyncio.run(main()) == {0: 200}
