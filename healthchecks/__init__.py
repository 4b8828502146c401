from healthchecks.health import (
    CheckStatus,
    CompositeHealthCheckResult,
    HealthCheck,
    HealthCheckBuilder,
    HealthCheckConfigurationError,
    HealthCheckResult,
    HealthCheckService,
    HealthReport,
    healthy,
    unhealthy,
    warning,
)

__all__ = [
    "CheckStatus",
    "CompositeHealthCheckResult",
    "HealthCheck",
    "HealthCheckBuilder",
    "HealthCheckConfigurationError",
    "HealthCheckResult",
    "HealthCheckService",
    "HealthReport",
    "healthy",
    "unhealthy",
    "warning",
]
