from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict

from trendwatch.trends.models import Period


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Redis (time-keyed store holding samples, trends and alerts)
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 5.0
    redis_max_connections: int = 20

    # Trend classification and alert thresholds (score points)
    trend_improvement_threshold: float = 5.0
    trend_degradation_threshold: float = -5.0
    trend_critical_threshold: float = -10.0

    # Period used when a caller does not name one
    default_period: Period = "24h"

    # Alert generation schedule (empty disables the scheduler)
    alert_schedule_cron: str = ""  # e.g. "*/15 * * * *"

    log_level: str = "INFO"

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()
