"""Checks and the TTL-cached executor that runs them.

A probe is any zero-argument callable returning a ``HealthCheckResult`` or an
awaitable of one. Blocking probes run on a shared thread pool owned by this
module, never the loop's default executor, so a hung probe cannot hold up
event-loop shutdown; coroutine probes are awaited directly. Either way
callers only ever ``await check.run()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Union

from .composite import CompositeHealthCheckResult
from .result import HealthCheckResult

logger = logging.getLogger(__name__)

ProbeResult = Union[HealthCheckResult, CompositeHealthCheckResult]
Probe = Callable[[], Union[ProbeResult, Awaitable[ProbeResult]]]
Duration = Union[float, int, timedelta]

# Blocking probes; abandoned (timed-out) probes finish here in the background
probe_executor = ThreadPoolExecutor(thread_name_prefix="healthcheck")


class HealthCheckConfigurationError(ValueError):
    """Raised at registration time for invalid check definitions."""


def to_seconds(value: Duration) -> float:
    """Normalize a ``timedelta`` or number of seconds to ``float`` seconds."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HealthCheckConfigurationError(f"Invalid duration: {value!r}")
    return float(value)


class HealthCheck:
    """A probe plus its private result cache.

    ``last_result`` / ``last_computed_at`` are owned by this instance and only
    touched while holding its lock, so concurrent callers of a stale check
    wait for one refresh instead of each hitting the probe.
    """

    def __init__(
        self,
        probe: Probe,
        cache_duration: Duration = 0.0,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not callable(probe):
            raise HealthCheckConfigurationError(f"Check probe must be callable, got {probe!r}")
        self.probe = probe
        self.cache_duration = to_seconds(cache_duration)
        if self.cache_duration < 0:
            raise HealthCheckConfigurationError("cache_duration must be >= 0")
        self.name = name
        self._clock = clock
        self.last_result: HealthCheckResult | None = None
        self.last_computed_at: float | None = None
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_check(cls, probe: Probe, cache_duration: Duration = 0.0, **kwargs: Any) -> HealthCheck:
        """Build a check from a sync or async probe."""
        if isinstance(probe, HealthCheck):
            return probe
        return cls(probe, cache_duration, **kwargs)

    def __repr__(self) -> str:
        return f"HealthCheck(name={self.name!r}, cache_duration={self.cache_duration})"

    # -- cache --

    def is_fresh(self) -> bool:
        """True while the cached result may be served without re-running."""
        if self.cache_duration <= 0 or self.last_result is None or self.last_computed_at is None:
            return False
        return self._clock() - self.last_computed_at < self.cache_duration

    def invalidate(self) -> None:
        """Drop the cached result so the next run re-invokes the probe."""
        self.last_result = None
        self.last_computed_at = None

    def _get_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to the loop it first waits on; hosts that call
        # asyncio.run() repeatedly get a fresh lock per loop.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # -- execution --

    async def run(self) -> HealthCheckResult:
        """Return the cached result, or invoke the probe and cache its result.

        Probe exceptions propagate untouched and leave the cache as it was.
        """
        async with self._get_lock():
            cached = self.last_result
            if cached is not None and self.is_fresh():
                logger.debug("Check %s: cache hit", self.name or self.probe)
                return cached

            result = await self._invoke()
            self.last_result = result
            self.last_computed_at = self._clock()
            logger.debug("Check %s: %s", self.name or self.probe, result.status.value)
            return result

    async def _invoke(self) -> HealthCheckResult:
        if inspect.iscoroutinefunction(self.probe):
            value = await self.probe()
        else:
            loop = asyncio.get_running_loop()
            value = await loop.run_in_executor(probe_executor, self.probe)
            if inspect.isawaitable(value):
                value = await value
        return _coerce(value)


def _coerce(value: Any) -> HealthCheckResult:
    if isinstance(value, HealthCheckResult):
        return value
    if isinstance(value, CompositeHealthCheckResult):
        return value.to_result()
    raise TypeError(
        f"Check returned {type(value).__name__}, expected HealthCheckResult"
    )
