"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from healthchecks.health.result import HealthCheckResult


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProbe:
    """Sync probe that records how often it ran."""

    def __init__(self, result: HealthCheckResult | None = None) -> None:
        self.calls = 0
        self.result = result or HealthCheckResult.healthy("ok")

    def __call__(self) -> HealthCheckResult:
        self.calls += 1
        return self.result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> CountingProbe:
    return CountingProbe()


@pytest.fixture
def make_probe() -> Callable[..., CountingProbe]:
    return CountingProbe
