"""Health subsystem — results, cached checks, combinators, service."""

from .builder import HealthCheckBuilder, run_composite
from .check import HealthCheck, HealthCheckConfigurationError
from .composite import CompositeHealthCheckResult
from .result import CheckStatus, HealthCheckResult, healthy, unhealthy, warning
from .service import HealthCheckService, HealthReport
