"""Composite results — many named child results rolled up into one.

Rollup is an escalation rule, not max-of-children: as soon as any child is
not ``HEALTHY`` the composite reports its configured ``partially_status``,
whatever the child's own severity was.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from .result import CheckStatus, HealthCheckResult


class CompositeHealthCheckResult:
    """Insertion-ordered collection of child results with an escalation status."""

    def __init__(
        self,
        partially_status: CheckStatus | str = CheckStatus.WARNING,
        initial_status: CheckStatus = CheckStatus.UNKNOWN,
    ) -> None:
        self.partially_status = CheckStatus.parse(partially_status).at_least(CheckStatus.HEALTHY)
        self.initial_status = initial_status
        self._results: dict[str, HealthCheckResult] = {}

    def add(self, name: str, result: HealthCheckResult) -> None:
        self._results[name] = result

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    @property
    def results(self) -> Mapping[str, HealthCheckResult]:
        return dict(self._results)

    @property
    def failing(self) -> list[str]:
        return [name for name, r in self._results.items() if not r.is_healthy]

    @property
    def status(self) -> CheckStatus:
        if not self._results:
            return self.initial_status
        if self.failing:
            return self.partially_status
        return CheckStatus.HEALTHY

    @property
    def description(self) -> str:
        total = len(self._results)
        if not total:
            return "No checks registered"
        failing = len(self.failing)
        if failing:
            summary = f"{failing} of {total} checks failing"
        else:
            summary = f"All {total} checks healthy"
        lines = [f"{name}: {r.description}" for name, r in self._results.items()]
        return "\n".join([summary, *lines])

    @property
    def data(self) -> dict[str, Any]:
        return dict(self._results)

    def to_result(self) -> HealthCheckResult:
        """Freeze the current state into an immutable result."""
        return HealthCheckResult(self.status, self.description, self.data)
