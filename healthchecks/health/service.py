"""Health check service — runs registered checks and builds the report.

Top-level checks fan out concurrently; each one's cache is private to it,
so siblings never interfere. A check that raises is reported as
``UNHEALTHY``; a check still running at the deadline is cancelled and
reported as ``UNKNOWN`` with ``data["Cancelled"]``, and the report's overall
status is raised to at least ``cancelled_status``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import settings
from .builder import HealthCheckBuilder
from .check import HealthCheck, HealthCheckConfigurationError
from .models import CheckResultModel, HealthReportModel
from .result import CheckStatus, HealthCheckResult

logger = logging.getLogger(__name__)

# Default for `timeout` arguments: fall back to the configured deadline.
# Passing None explicitly means "no deadline".
USE_DEFAULT: Any = object()


@dataclass(frozen=True)
class HealthReport:
    """Point-in-time snapshot of every top-level check result."""

    results: Mapping[str, HealthCheckResult]
    cancelled: tuple[str, ...] = field(default=())
    cancelled_status: CheckStatus = CheckStatus.UNHEALTHY

    @property
    def status(self) -> CheckStatus:
        # Straight max severity, no escalation at the outermost layer
        status = CheckStatus.worst(r.status for r in self.results.values())
        if self.cancelled:
            # A missed deadline never reads as healthy
            status = status.at_least(self.cancelled_status)
        return status

    @property
    def is_healthy(self) -> bool:
        return self.status == CheckStatus.HEALTHY

    def __getitem__(self, name: str) -> HealthCheckResult:
        return self.results[name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": {name: r.to_dict() for name, r in self.results.items()},
            "cancelled": list(self.cancelled),
        }

    def to_model(self) -> HealthReportModel:
        return HealthReportModel(
            status=self.status.value,
            checks={
                name: CheckResultModel(**r.to_dict()) for name, r in self.results.items()
            },
            cancelled=list(self.cancelled),
        )


class HealthCheckService:
    """Runs the top-level checks of a builder and folds them into a report."""

    def __init__(
        self,
        checks: HealthCheckBuilder | Mapping[str, HealthCheck],
        timeout: float | None = USE_DEFAULT,
        cancelled_status: CheckStatus | str | None = None,
    ) -> None:
        if isinstance(checks, HealthCheckBuilder):
            checks = checks.checks
        if not isinstance(checks, Mapping):
            raise HealthCheckConfigurationError(
                f"Expected a HealthCheckBuilder or mapping of checks, got {checks!r}"
            )
        self._checks: dict[str, HealthCheck] = dict(checks)
        self.timeout = settings.check_timeout if timeout is USE_DEFAULT else timeout
        if cancelled_status is None:
            cancelled_status = settings.cancelled_status
        self.cancelled_status = CheckStatus.parse(cancelled_status)
        logger.info("Health check service ready: %d checks %s", len(self._checks), list(self._checks))

    @property
    def checks(self) -> Mapping[str, HealthCheck]:
        return dict(self._checks)

    async def check_health(
        self,
        names: Iterable[str] | None = None,
        timeout: float | None = USE_DEFAULT,
    ) -> HealthReport:
        """Run all (or the named) checks and return a fresh report.

        Args:
            names: Optional subset of check names. Unknown names are ignored.
            timeout: Deadline in seconds for the whole report; checks still
                running are cancelled and reported as cancelled. Omit to use
                the service deadline, pass None for no deadline.
        """
        selected = self._select(names)
        if not selected:
            logger.warning("No health checks found for names: %s", names)
            return HealthReport(results={})

        deadline = self.timeout if timeout is USE_DEFAULT else timeout
        tasks = {
            name: asyncio.create_task(self._run_single_check(name, check), name=f"health-{name}")
            for name, check in selected.items()
        }

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        except asyncio.CancelledError:
            # Caller cancelled the report: stop every probe and re-raise
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: dict[str, HealthCheckResult] = {}
        cancelled: list[str] = []
        for name, task in tasks.items():
            if task.cancelled():
                logger.warning("Health check %s cancelled after %ss", name, deadline)
                results[name] = HealthCheckResult.cancelled(
                    f"Check did not complete within {deadline}s"
                )
                cancelled.append(name)
            else:
                results[name] = task.result()

        report = HealthReport(
            results=results,
            cancelled=tuple(cancelled),
            cancelled_status=self.cancelled_status,
        )
        logger.debug("Health report: %s (%d checks)", report.status.value, len(results))
        return report

    def check_health_sync(
        self,
        names: Iterable[str] | None = None,
        timeout: float | None = USE_DEFAULT,
    ) -> HealthReport:
        """Blocking wrapper for hosts without a running event loop."""
        return asyncio.run(self.check_health(names, timeout))

    async def _run_single_check(self, name: str, check: HealthCheck) -> HealthCheckResult:
        try:
            return await check.run()
        except Exception as e:
            logger.exception("Error running health check %s", name)
            return HealthCheckResult.from_exception(e)

    def _select(self, names: Iterable[str] | None) -> dict[str, HealthCheck]:
        if names is None:
            return dict(self._checks)
        wanted = set(names)
        return {name: c for name, c in self._checks.items() if name in wanted}
