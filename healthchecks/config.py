from __future__ import annotations

from pydantic_settings import BaseSettings


class HealthCheckSettings(BaseSettings):
    """Engine-wide defaults loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "HEALTHCHECKS_",
        "extra": "ignore",
    }

    # Cache TTL (seconds) for checks registered without an explicit duration
    default_cache_duration: float = 300.0  # 0 = always re-run

    # Retry combinator defaults
    retry_threshold: int = 5
    retry_delay: float = 0.0  # seconds awaited after every attempt
    retry_partially_status: str = "warning"  # healthy | warning | unhealthy

    # Escalation status for groups when any child is not healthy
    group_status_if_any_unhealthy: str = "warning"

    # Report deadline (seconds); unset = wait for every check
    check_timeout: float | None = None

    # Minimum overall report status when any check missed the deadline
    cancelled_status: str = "unhealthy"


settings = HealthCheckSettings()
