"""
Tests for the retry policy.
"""
import asyncio

import pytest

from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.retry import RetryPolicy
from guestboard.services.upstream import Counters
from tests.conftest import FakeUpstream, unreachable


class TestRetryPolicyConstruction:
    """Tests for argument validation."""

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(delay_seconds=-1)


class TestRetryPolicyRun:
    """Tests for RetryPolicy.run."""

    async def test_first_success_short_circuits(self, recording_sleep):
        upstream = FakeUpstream(Counters(waiting=2))
        policy = RetryPolicy(max_attempts=3, delay_seconds=1, sleep=recording_sleep)

        assert await policy.run(lambda: upstream.fetch("k")) == Counters(waiting=2)
        assert len(upstream.calls) == 1
        assert recording_sleep.delays == []

    async def test_retries_until_success(self, recording_sleep):
        upstream = FakeUpstream(unreachable(), unreachable(), Counters(waiting=4))
        policy = RetryPolicy(max_attempts=3, delay_seconds=2, sleep=recording_sleep)

        assert await policy.run(lambda: upstream.fetch("k")) == Counters(waiting=4)
        assert len(upstream.calls) == 3
        assert recording_sleep.delays == [2, 2]

    async def test_exhaustion_raises_last_error(self, recording_sleep):
        upstream = FakeUpstream(
            unreachable("first"),
            UpstreamError(ErrorKind.AUTH_FAILED, "bad password"),
        )
        policy = RetryPolicy(max_attempts=2, delay_seconds=0.5, sleep=recording_sleep)

        with pytest.raises(UpstreamError) as exc_info:
            await policy.run(lambda: upstream.fetch("k"))

        assert exc_info.value.kind is ErrorKind.AUTH_FAILED
        assert exc_info.value.message == "bad password"
        assert recording_sleep.delays == [0.5]

    async def test_single_attempt_never_sleeps(self, recording_sleep):
        upstream = FakeUpstream(unreachable())
        policy = RetryPolicy(max_attempts=1, delay_seconds=5, sleep=recording_sleep)

        with pytest.raises(UpstreamError):
            await policy.run(lambda: upstream.fetch("k"))

        assert recording_sleep.delays == []

    async def test_other_exceptions_not_retried(self, recording_sleep):
        upstream = FakeUpstream(KeyError("data"), Counters(waiting=1))
        policy = RetryPolicy(max_attempts=3, sleep=recording_sleep)

        with pytest.raises(KeyError):
            await policy.run(lambda: upstream.fetch("k"))

        assert len(upstream.calls) == 1

    async def test_attempt_timeout_counts_as_unreachable(self, recording_sleep):
        calls = []

        async def hang():
            calls.append(1)
            await asyncio.sleep(10)
            return Counters(waiting=0)

        policy = RetryPolicy(max_attempts=2, delay_seconds=0, attempt_timeout=0.01, sleep=recording_sleep)

        with pytest.raises(UpstreamError) as exc_info:
            await policy.run(hang)

        assert exc_info.value.kind is ErrorKind.UNREACHABLE
        assert len(calls) == 2
