"""
Shared test fixtures and helpers.
"""
from __future__ import annotations

import asyncio
from typing import Generator, List, Optional, Union

import pytest

from guestboard.config import AppConfig
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.retry import RetryPolicy
from guestboard.services.stats_cache import StatsCache
from guestboard.services.upstream import Counters
from guestboard.state import AppState, app_state


Outcome = Union[Counters, Exception]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeUpstream:
    """
    Scripted upstream. Each call consumes the next outcome; the last outcome
    repeats once the script runs out. When `gate` is set, calls block until
    the test opens it.
    """

    def __init__(self, *outcomes: Outcome, gate: Optional[asyncio.Event] = None):
        self.outcomes = list(outcomes) or [Counters(waiting=0)]
        self.gate = gate
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, key: str) -> Counters:
        self.calls.append(key)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            index = min(len(self.calls) - 1, len(self.outcomes) - 1)
            outcome = self.outcomes[index]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.active -= 1


def unreachable(message: str = "connection refused") -> UpstreamError:
    return UpstreamError(ErrorKind.UNREACHABLE, message)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_cache(clock, recording_sleep):
    """Factory for a StatsCache wired to a fake upstream, fake clock and fake sleep."""

    def _make(upstream: FakeUpstream, max_attempts: int = 3, delay: float = 2.0, **kwargs) -> StatsCache:
        policy = RetryPolicy(max_attempts=max_attempts, delay_seconds=delay, sleep=recording_sleep)
        return StatsCache(fetch=upstream.fetch, retry_policy=policy, clock=clock, **kwargs)

    return _make


@pytest.fixture
def test_config() -> AppConfig:
    """Config with credentials set and no .env influence."""
    return AppConfig(
        _env_file=None,
        upstream_client="hostes",
        upstream_url="http://hostes.test",
        upstream_login="manager",
        upstream_password="secret",
        cache_ttl_seconds=60,
    )


@pytest.fixture
def mock_app_state(test_config) -> Generator[AppState, None, None]:
    """
    Set up app_state with test values and reset after test.
    """
    original = (app_state.config, app_state.upstream_client, app_state.stats_cache)

    app_state.config = test_config
    app_state.upstream_client = None
    app_state.stats_cache = None

    yield app_state

    app_state.config, app_state.upstream_client, app_state.stats_cache = original


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove upstream-related variables and reset the cached config."""
    from guestboard.config import get_config

    for name in ("UPSTREAM_CLIENT", "UPSTREAM_URL", "UPSTREAM_LOGIN", "UPSTREAM_PASSWORD",
                 "UPSTREAM_STATUSES", "UPSTREAM_PLACES", "CACHE_TTL_SECONDS",
                 "RETRY_ATTEMPT_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_config.cache_clear()
    yield monkeypatch
    get_config.cache_clear()
