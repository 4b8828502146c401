"""Check registry — named checks, groups and retry combinators.

Registration happens once during a single-threaded configuration phase; the
builder is read-only afterwards. Registering a name twice replaces the first
check (last write wins).

    builder = (
        HealthCheckBuilder(default_cache_duration=60)
        .add_check("db", ping_db)
        .add_health_check_group(
            "memory",
            lambda g: g.add_check("rss", rss_check).add_check("vms", vms_check),
            CheckStatus.UNHEALTHY,
        )
        .add_retry_check("flaky-api", call_api, threshold=3, delay=0.5)
    )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Union

from ..config import settings
from .check import Duration, HealthCheck, HealthCheckConfigurationError, Probe, to_seconds
from .composite import CompositeHealthCheckResult
from .result import CheckStatus, HealthCheckResult

logger = logging.getLogger(__name__)


class HealthCheckBuilder:
    """Mutable mapping of check name to ``HealthCheck``."""

    def __init__(
        self,
        default_cache_duration: Duration | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_cache_duration is None:
            default_cache_duration = settings.default_cache_duration
        self.default_cache_duration = to_seconds(default_cache_duration)
        if self.default_cache_duration < 0:
            raise HealthCheckConfigurationError("default_cache_duration must be >= 0")
        self._clock = clock
        self._checks: dict[str, HealthCheck] = {}

    @property
    def checks(self) -> Mapping[str, HealthCheck]:
        return MappingProxyType(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks

    def __iter__(self) -> Iterator[str]:
        return iter(self._checks)

    # ── Direct checks ────────────────────────────────────────────────────────

    def add_check(
        self,
        name: str,
        check: Probe | HealthCheck,
        cache_duration: Duration | None = None,
    ) -> HealthCheckBuilder:
        """Register a sync or async probe (or a prebuilt ``HealthCheck``).

        A prebuilt check keeps its own cache duration and, when it already has
        one, its own name; the same instance registered twice shares one cache.
        """
        _require_name(name)
        if isinstance(check, HealthCheck):
            if cache_duration is not None:
                raise HealthCheckConfigurationError(
                    f"cache_duration cannot be applied to prebuilt check {check!r}"
                )
            health_check = check
            if not health_check.name:
                health_check.name = name
        else:
            if cache_duration is None:
                cache_duration = self.default_cache_duration
            health_check = HealthCheck(check, cache_duration, name=name, clock=self._clock)

        if name in self._checks:
            logger.debug("Replacing previously registered check %r", name)
        self._checks[name] = health_check
        return self

    # ── Groups ───────────────────────────────────────────────────────────────

    def add_health_check_group(
        self,
        group_name: str,
        inner: InnerChecks,
        status_if_any_unhealthy: CheckStatus | str | None = None,
        cache_duration: Duration | None = None,
    ) -> HealthCheckBuilder:
        """Fold the checks of a child builder into one composite check.

        Whenever any child is not healthy the group reports
        ``status_if_any_unhealthy``, regardless of the child's own severity.
        """
        _require_name(group_name)
        children = self._inner_checks(inner)
        if status_if_any_unhealthy is None:
            status_if_any_unhealthy = settings.group_status_if_any_unhealthy
        escalation = CheckStatus.parse(status_if_any_unhealthy)

        async def group_check() -> HealthCheckResult:
            return await run_composite(children, escalation)

        return self.add_check(group_name, group_check, cache_duration)

    # ── Retry ────────────────────────────────────────────────────────────────

    def add_retry_check(
        self,
        name: str,
        check: Probe,
        threshold: int | None = None,
        delay: Duration | None = None,
        partially_status: CheckStatus | str | None = None,
        cache_duration: Duration | None = None,
    ) -> HealthCheckBuilder:
        """Run ``check`` ``threshold`` times and record every attempt.

        Attempts are named ``"Run {i}"`` (or ``"Run {i} failed"`` when the
        probe raised). ``delay`` is awaited after every attempt, the last one
        included.
        """
        _require_name(name)
        threshold, delay_s, escalation = self._retry_options(threshold, delay, partially_status)
        attempt = HealthCheck(check, 0)

        async def retry_check() -> HealthCheckResult:
            composite = CompositeHealthCheckResult(escalation)
            for i in range(threshold):
                try:
                    composite.add(f"Run {i}", await attempt.run())
                except Exception as exc:
                    logger.warning("Retry check %r attempt %d failed: %s", name, i, exc)
                    composite.add(f"Run {i} failed", HealthCheckResult.from_exception(exc))
                await asyncio.sleep(delay_s)
            return composite.to_result()

        return self.add_check(name, retry_check, cache_duration)

    def add_retry_group(
        self,
        group_name: str,
        inner: InnerChecks,
        threshold: int | None = None,
        delay: Duration | None = None,
        partially_status: CheckStatus | str | None = None,
        cache_duration: Duration | None = None,
    ) -> HealthCheckBuilder:
        """Register ``"Group {group_name}"`` running every inner check once.

        ``threshold`` and ``delay`` are validated but do not repeat the group;
        repetition is left to the inner checks' own retry/cache policy.
        """
        _require_name(group_name)
        threshold, delay_s, escalation = self._retry_options(threshold, delay, partially_status)
        if threshold != 1 or delay_s:
            logger.debug(
                "Retry group %r: threshold=%d delay=%ss apply per inner check only",
                group_name, threshold, delay_s,
            )
        children = self._inner_checks(inner)

        async def group_check() -> HealthCheckResult:
            return await run_composite(children, escalation)

        return self.add_check(f"Group {group_name}", group_check, cache_duration)

    # ── Internals ────────────────────────────────────────────────────────────

    def child(self) -> HealthCheckBuilder:
        """Empty builder sharing this builder's defaults."""
        return HealthCheckBuilder(self.default_cache_duration, clock=self._clock)

    def _inner_checks(self, inner: InnerChecks) -> dict[str, HealthCheck]:
        """Snapshot of the group's checks, taken at registration time."""
        if isinstance(inner, HealthCheckBuilder):
            built = inner
        elif callable(inner):
            child = self.child()
            returned = inner(child)
            if returned is None:
                built = child
            elif isinstance(returned, HealthCheckBuilder):
                built = returned
            else:
                raise HealthCheckConfigurationError(
                    f"Group configuration returned {type(returned).__name__}, expected HealthCheckBuilder"
                )
        else:
            raise HealthCheckConfigurationError(
                f"Inner checks must be a HealthCheckBuilder or a callable, got {inner!r}"
            )
        if built is self:
            raise HealthCheckConfigurationError("A group cannot be built from its own builder")
        return dict(built.checks)

    @staticmethod
    def _retry_options(
        threshold: int | None,
        delay: Duration | None,
        partially_status: CheckStatus | str | None,
    ) -> tuple[int, float, CheckStatus]:
        threshold = settings.retry_threshold if threshold is None else threshold
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
            raise HealthCheckConfigurationError(f"threshold must be a positive int, got {threshold!r}")
        delay_s = to_seconds(settings.retry_delay if delay is None else delay)
        if delay_s < 0:
            raise HealthCheckConfigurationError("delay must be >= 0")
        if partially_status is None:
            partially_status = settings.retry_partially_status
        return threshold, delay_s, CheckStatus.parse(partially_status)


InnerChecks = Union[HealthCheckBuilder, Callable[[HealthCheckBuilder], Union[HealthCheckBuilder, None]]]


async def run_composite(
    checks: Mapping[str, HealthCheck],
    partially_status: CheckStatus,
) -> HealthCheckResult:
    """Run each check once, in registration order, into one composite result.

    A raising child becomes an ``UNHEALTHY`` entry; it never aborts its
    siblings.
    """
    composite = CompositeHealthCheckResult(partially_status)
    for name, check in list(checks.items()):
        try:
            result = await check.run()
        except Exception as exc:
            logger.warning("Check %r failed: %s", name, exc)
            result = HealthCheckResult.from_exception(exc)
        composite.add(name, result)
    return composite.to_result()


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise HealthCheckConfigurationError(f"Check name must be a non-empty string, got {name!r}")
