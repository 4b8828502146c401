"""Tests for HealthCheck — probe invocation and the TTL result cache."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from healthchecks.health.check import HealthCheck, HealthCheckConfigurationError, to_seconds
from healthchecks.health.composite import CompositeHealthCheckResult
from healthchecks.health.result import CheckStatus, HealthCheckResult

# ── Probe invocation ─────────────────────────────────────────────────────────


class TestInvocation:
    def test_sync_probe(self, probe) -> None:
        check = HealthCheck(probe)
        result = asyncio.run(check.run())
        assert result.status == CheckStatus.HEALTHY
        assert probe.calls == 1

    def test_async_probe(self) -> None:
        async def probe() -> HealthCheckResult:
            await asyncio.sleep(0)
            return HealthCheckResult.warning("slow")

        result = asyncio.run(HealthCheck(probe).run())
        assert result.status == CheckStatus.WARNING

    def test_sync_callable_returning_coroutine(self) -> None:
        async def inner() -> HealthCheckResult:
            return HealthCheckResult.healthy("deferred")

        result = asyncio.run(HealthCheck(lambda: inner()).run())
        assert result.description == "deferred"

    def test_composite_return_is_frozen(self) -> None:
        def probe() -> CompositeHealthCheckResult:
            c = CompositeHealthCheckResult()
            c.add("x", HealthCheckResult.healthy("ok"))
            return c

        result = asyncio.run(HealthCheck(probe).run())
        assert isinstance(result, HealthCheckResult)
        assert result.status == CheckStatus.HEALTHY

    def test_wrong_return_type_raises(self) -> None:
        with pytest.raises(TypeError):
            asyncio.run(HealthCheck(lambda: "fine").run())

    def test_exception_propagates(self) -> None:
        def boom() -> HealthCheckResult:
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError):
            asyncio.run(HealthCheck(boom).run())

    def test_from_check_reuses_existing(self, probe) -> None:
        check = HealthCheck(probe, 10)
        assert HealthCheck.from_check(check) is check
        assert HealthCheck.from_check(probe, 5).cache_duration == 5.0


# ── Cache ────────────────────────────────────────────────────────────────────


class TestCache:
    def test_within_ttl_returns_same_result(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=30, clock=clock)

        async def scenario() -> tuple[HealthCheckResult, HealthCheckResult]:
            first = await check.run()
            clock.advance(29)
            second = await check.run()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is second
        assert probe.calls == 1

    def test_expired_ttl_reruns(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=timedelta(seconds=30), clock=clock)

        async def scenario() -> None:
            await check.run()
            clock.advance(30)
            await check.run()

        asyncio.run(scenario())
        assert probe.calls == 2

    def test_zero_duration_always_reruns(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=0, clock=clock)

        async def scenario() -> None:
            for _ in range(4):
                await check.run()

        asyncio.run(scenario())
        assert probe.calls == 4

    def test_failure_leaves_cache_untouched(self, clock) -> None:
        calls = {"n": 0}

        def flaky() -> HealthCheckResult:
            calls["n"] += 1
            if calls["n"] == 2:
                raise TimeoutError("slow upstream")
            return HealthCheckResult.healthy(f"run {calls['n']}")

        check = HealthCheck(flaky, cache_duration=10, clock=clock)

        async def scenario() -> HealthCheckResult:
            await check.run()
            clock.advance(11)
            with pytest.raises(TimeoutError):
                await check.run()
            assert check.last_result is not None
            assert check.last_result.description == "run 1"
            return await check.run()

        assert asyncio.run(scenario()).description == "run 3"

    def test_timestamp_without_result_reruns(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=60, clock=clock)
        check.last_computed_at = clock()

        result = asyncio.run(check.run())
        assert result is probe.result
        assert probe.calls == 1

    def test_invalidate(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=60, clock=clock)

        async def scenario() -> None:
            await check.run()
            check.invalidate()
            assert not check.is_fresh()
            await check.run()

        asyncio.run(scenario())
        assert probe.calls == 2

    def test_concurrent_callers_share_one_refresh(self, clock) -> None:
        calls = {"n": 0}

        async def slow() -> HealthCheckResult:
            calls["n"] += 1
            await asyncio.sleep(0.01)
            return HealthCheckResult.healthy("ok")

        check = HealthCheck(slow, cache_duration=60, clock=clock)

        async def scenario() -> list[HealthCheckResult]:
            return await asyncio.gather(check.run(), check.run(), check.run())

        results = asyncio.run(scenario())
        assert calls["n"] == 1
        assert results[0] is results[1] is results[2]

    def test_reusable_across_event_loops(self, probe, clock) -> None:
        check = HealthCheck(probe, cache_duration=0, clock=clock)
        asyncio.run(check.run())
        asyncio.run(check.run())
        assert probe.calls == 2


# ── Configuration errors ─────────────────────────────────────────────────────


class TestConfiguration:
    def test_non_callable_probe(self) -> None:
        with pytest.raises(HealthCheckConfigurationError):
            HealthCheck("not a function")  # type: ignore[arg-type]

    def test_negative_cache_duration(self, probe) -> None:
        with pytest.raises(HealthCheckConfigurationError):
            HealthCheck(probe, cache_duration=-1)

    def test_to_seconds(self) -> None:
        assert to_seconds(timedelta(minutes=5)) == 300.0
        assert to_seconds(2) == 2.0
        with pytest.raises(HealthCheckConfigurationError):
            to_seconds("5m")  # type: ignore[arg-type]
