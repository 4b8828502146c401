"""Status model — ordered severities and immutable check results.

A ``HealthCheckResult`` is produced by exactly one check invocation and is
never mutated afterwards. Probe failures are expressed as ``UNHEALTHY``
results carrying the exception detail under ``data["Details"]``.
"""

from __future__ import annotations

import traceback
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

DETAILS_KEY = "Details"
CANCELLED_KEY = "Cancelled"


# ── Status ───────────────────────────────────────────────────────────────────


class CheckStatus(str, Enum):
    UNKNOWN = "unknown"  # empty composite / cancelled check
    HEALTHY = "healthy"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def at_least(self, other: CheckStatus) -> CheckStatus:
        """Return whichever of ``self`` / ``other`` is more severe."""
        return self if self.severity >= other.severity else other

    @classmethod
    def worst(cls, statuses: Iterable[CheckStatus]) -> CheckStatus:
        """Maximum severity of ``statuses``; ``UNKNOWN`` when there are none."""
        return max(statuses, key=lambda s: s.severity, default=cls.UNKNOWN)

    @classmethod
    def parse(cls, value: CheckStatus | str) -> CheckStatus:
        """Accept an enum member or its (case-insensitive) name/value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown check status: {value!r}") from None


_SEVERITY = {
    CheckStatus.UNKNOWN: 0,
    CheckStatus.HEALTHY: 1,
    CheckStatus.WARNING: 2,
    CheckStatus.UNHEALTHY: 3,
}


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a single check invocation."""

    status: CheckStatus
    description: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.description is None:
            raise TypeError("HealthCheckResult requires a description")
        # Freeze the payload so a result can be shared from the cache safely
        object.__setattr__(self, "data", MappingProxyType(dict(self.data or {})))

    # -- constructors --

    @classmethod
    def healthy(cls, description: str, data: Mapping[str, Any] | None = None) -> HealthCheckResult:
        return cls(CheckStatus.HEALTHY, description, data or {})

    @classmethod
    def warning(cls, description: str, data: Mapping[str, Any] | None = None) -> HealthCheckResult:
        return cls(CheckStatus.WARNING, description, data or {})

    @classmethod
    def unhealthy(cls, description: str, data: Mapping[str, Any] | None = None) -> HealthCheckResult:
        return cls(CheckStatus.UNHEALTHY, description, data or {})

    @classmethod
    def from_exception(cls, exc: BaseException) -> HealthCheckResult:
        """Translate a probe failure into an ``UNHEALTHY`` result."""
        details = {
            "error": str(exc),
            "error_type": type(exc).__name__,
            "traceback": "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
        }
        return cls.unhealthy(str(exc) or type(exc).__name__, {DETAILS_KEY: details})

    @classmethod
    def cancelled(cls, description: str = "Check cancelled") -> HealthCheckResult:
        return cls(CheckStatus.UNKNOWN, description, {CANCELLED_KEY: True})

    # -- helpers --

    @property
    def is_healthy(self) -> bool:
        return self.status == CheckStatus.HEALTHY

    @property
    def is_unhealthy(self) -> bool:
        return self.status == CheckStatus.UNHEALTHY

    @property
    def is_cancelled(self) -> bool:
        return bool(self.data.get(CANCELLED_KEY))

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict rendering; nested child results are expanded."""
        return {
            "status": self.status.value,
            "description": self.description,
            "data": {k: _plain(v) for k, v in self.data.items()},
        }


def _plain(value: Any) -> Any:
    if isinstance(value, HealthCheckResult):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


healthy = HealthCheckResult.healthy
warning = HealthCheckResult.warning
unhealthy = HealthCheckResult.unhealthy
