"""
Stats cache - single-flight, TTL-based cache in front of the upstream fetch.
"""
from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict

from guestboard.logging import get_logger
from guestboard.services.errors import BusyError, UpstreamError
from guestboard.services.retry import RetryPolicy
from guestboard.services.upstream import Counters

logger = get_logger(__name__)


# Maximum number of keys to keep to prevent memory leak (one key per requested date)
MAX_KEYS = 1000


@dataclass(frozen=True)
class CacheEntry:
    """Last good counters for a key. Replaced on refresh, never mutated."""
    key: str
    value: Counters
    fetched_at: float
    ttl: float
    updated_at: float = field(default_factory=time.time)

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl


@dataclass
class FetchState:
    """A refresh in progress for one key."""
    task: asyncio.Task
    started_at: float
    waiters: int = 0


@dataclass
class CacheMetrics:
    """Counters describing how requests were served."""
    hits: int = 0
    misses: int = 0
    stale_serves: int = 0
    coalesced_waits: int = 0
    fetch_failures: int = 0
    busy_rejections: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_serves": self.stale_serves,
            "coalesced_waits": self.coalesced_waits,
            "fetch_failures": self.fetch_failures,
            "busy_rejections": self.busy_rejections,
        }


def _consume_task_exception(task: asyncio.Task) -> None:
    # The initiator may have been cancelled before reading the outcome
    if not task.cancelled():
        task.exception()


class StatsCache:
    """
    Async-safe stale-while-revalidate cache with per-key single-flight refresh.

    - a fresh entry is returned without touching the upstream
    - an expired entry triggers exactly one refresh per key; callers arriving
      while it runs get the expired value instead of waiting
    - a key with no entry yet makes concurrent callers share the one refresh
      (or raise BusyError when `wait_for_cold_fetch` is off)
    - a failed refresh never removes the previous entry
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Counters]],
        retry_policy: RetryPolicy,
        *,
        wait_for_cold_fetch: bool = True,
        max_keys: int = MAX_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._retry_policy = retry_policy
        self._wait_for_cold_fetch = wait_for_cold_fetch
        self._max_keys = max_keys
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._in_flight: Dict[str, FetchState] = {}
        self._lock = asyncio.Lock()
        self.metrics = CacheMetrics()

    def _store(self, entry: CacheEntry) -> None:
        """Write an entry, evicting the least recently used key at capacity. Lock must be held."""
        if entry.key in self._entries:
            self._entries.move_to_end(entry.key)
        elif len(self._entries) >= self._max_keys:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache key {evicted}")
        self._entries[entry.key] = entry

    async def _refresh(self, key: str, ttl: float, started_at: float) -> Counters:
        """Fetch through the retry policy and publish the outcome for `key`."""
        logger.info(f"Fetching counters for {key}")
        try:
            value = await self._retry_policy.run(lambda: self._fetch(key))
        except BaseException:
            async with self._lock:
                self._in_flight.pop(key, None)
                self.metrics.fetch_failures += 1
            raise

        async with self._lock:
            current = self._entries.get(key)
            if current is not None and current.fetched_at > started_at:
                logger.warning(f"Discarding result for {key}: a newer entry was written meanwhile")
            else:
                self._store(CacheEntry(key=key, value=value, fetched_at=self._clock(), ttl=ttl))
            self._in_flight.pop(key, None)

        logger.info(f"Fetched counters for {key}: {value.to_dict()}")
        return value

    async def get(self, key: str, ttl: float) -> Counters:
        """
        Get counters for `key`, refreshing them if older than `ttl` seconds.

        Raises:
            UpstreamError: the refresh failed and there was no earlier value
            BusyError: a first refresh is running and waiting is disabled
        """
        initiator = False

        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None and entry.is_fresh(now, ttl):
                self._entries.move_to_end(key)
                self.metrics.hits += 1
                logger.debug(f"Cache hit for {key}")
                return entry.value

            state = self._in_flight.get(key)
            if state is not None:
                if entry is not None:
                    self.metrics.stale_serves += 1
                    logger.debug(f"Refresh for {key} in flight, serving stale value")
                    return entry.value
                if not self._wait_for_cold_fetch:
                    self.metrics.busy_rejections += 1
                    raise BusyError(key)
                state.waiters += 1
                self.metrics.coalesced_waits += 1
            else:
                self.metrics.misses += 1
                task = asyncio.get_running_loop().create_task(self._refresh(key, ttl, now))
                task.add_done_callback(_consume_task_exception)
                state = FetchState(task=task, started_at=now)
                self._in_flight[key] = state
                initiator = True

        try:
            return await asyncio.shield(state.task)
        except UpstreamError as e:
            if initiator and entry is not None:
                async with self._lock:
                    self.metrics.stale_serves += 1
                logger.warning(f"Refresh for {key} failed, serving stale value: {e}")
                return entry.value
            raise

    async def invalidate(self, key: str) -> None:
        """Drop the cached entry for `key`. A refresh in flight is left alone."""
        async with self._lock:
            self._entries.pop(key, None)

    async def close(self) -> None:
        """Cancel refreshes still in flight. Entries are kept."""
        async with self._lock:
            tasks = [state.task for state in self._in_flight.values()]
            self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} refresh(es) on shutdown")

    async def snapshot(self) -> Dict[str, object]:
        """Describe the cache contents for operators."""
        async with self._lock:
            now = self._clock()
            return {
                "metrics": self.metrics.to_dict(),
                "in_flight": sorted(self._in_flight),
                "entries": {
                    key: {
                        "age_seconds": round(now - entry.fetched_at, 2),
                        "ttl_seconds": entry.ttl,
                        "updated_at": int(entry.updated_at),
                        "value": entry.value.to_dict(),
                    }
                    for key, entry in self._entries.items()
                },
            }
