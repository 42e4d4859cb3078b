import asyncio

import pytest

from conftest import SleepRecorder
from nanogpt_catalog.errors import (
    CatalogCancelledError,
    HttpStatusError,
    NetworkError,
    ValidationError,
)
from nanogpt_catalog.models import RetryPolicy
from nanogpt_catalog.retry import RetryExecutor, run_cancellable, wait_or_cancel


def _flaky(failures):
    """Coroutine factory raising each of ``failures`` in turn, then returning 'ok'."""
    state = {"calls": 0}
    remaining = list(failures)

    async def op():
        state["calls"] += 1
        if remaining:
            raise remaining.pop(0)
        return "ok"

    return op, state


class TestRetryPolicy:
    def test_delay_schedule(self):
        p = RetryPolicy(max_attempts=4, base_delay=1.0, backoff_multiplier=2.0)
        assert [p.delay_for(k) for k in (1, 2, 3)] == [1.0, 2.0, 4.0]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": 0},
            {"base_delay": -1.0},
            {"backoff_multiplier": 0.5},
        ],
    )
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRetryExecutor:
    @pytest.mark.asyncio
    async def test_succeeds_after_two_failures_with_exponential_delays(self, sleeps, policy):
        op, state = _flaky([NetworkError("reset"), HttpStatusError(502, "bad gateway")])
        result = await RetryExecutor(sleep=sleeps).execute(op, policy)

        assert result == "ok"
        assert state["calls"] == 3
        assert sleeps.delays == [1.0, 2.0]
        assert sum(sleeps.delays) >= 3.0

    @pytest.mark.asyncio
    async def test_reraises_last_transient_error_unchanged(self, sleeps, policy):
        last = HttpStatusError(503, "down")
        op, state = _flaky([NetworkError("a"), NetworkError("b"), last])

        with pytest.raises(HttpStatusError) as exc_info:
            await RetryExecutor(sleep=sleeps).execute(op, policy)

        assert exc_info.value is last
        assert state["calls"] == 3
        assert sleeps.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_transient_error_gets_exactly_one_attempt(self, sleeps, policy):
        op, state = _flaky([ValidationError("data[0].id", "a string")])

        with pytest.raises(ValidationError):
            await RetryExecutor(sleep=sleeps).execute(op, policy)

        assert state["calls"] == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_single_attempt_policy_never_sleeps(self, sleeps):
        op, state = _flaky([NetworkError("once")])
        with pytest.raises(NetworkError):
            await RetryExecutor(sleep=sleeps).execute(op, RetryPolicy(max_attempts=1))
        assert state["calls"] == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_cancel_before_first_attempt(self, sleeps, policy):
        op, state = _flaky([])
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(CatalogCancelledError):
            await RetryExecutor(sleep=sleeps).execute(op, policy, cancel)

        assert state["calls"] == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_further_attempts(self, policy):
        recorder = SleepRecorder(cancel_after=1)
        op, state = _flaky([NetworkError("a"), NetworkError("b")])

        with pytest.raises(CatalogCancelledError):
            await RetryExecutor(sleep=recorder).execute(op, policy, asyncio.Event())

        assert state["calls"] == 1
        assert recorder.delays == [1.0]


class TestCancellationHelpers:
    @pytest.mark.asyncio
    async def test_wait_or_cancel_returns_true_when_signalled(self):
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, cancel.set)
        assert await wait_or_cancel(5.0, cancel) is True

    @pytest.mark.asyncio
    async def test_wait_or_cancel_times_out(self):
        assert await wait_or_cancel(0.01, asyncio.Event()) is False

    @pytest.mark.asyncio
    async def test_run_cancellable_abandons_in_flight_operation(self):
        cancel = asyncio.Event()
        started = asyncio.Event()
        seen = {"cancelled": False}

        async def slow():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                seen["cancelled"] = True
                raise

        async def trigger():
            await started.wait()
            cancel.set()

        asyncio.ensure_future(trigger())
        with pytest.raises(CatalogCancelledError):
            await run_cancellable(slow, cancel)
        assert seen["cancelled"] is True
