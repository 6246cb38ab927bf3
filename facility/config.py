"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./facility.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    log_dir: str = Field(default="logs", description="Directory receiving per-service audit logs")
    log_level: str = Field(default="INFO", description="Level for the facility.* loggers")
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")

    auto_refresh_seconds: int = Field(default=300, description="Interval (s) between automatic room status refreshes")
    backend_timeout_seconds: float = Field(default=10.0, description="Network timeout for dashboard fetches")
    dashboard_base_url: str = Field(default="http://localhost:8002", description="Rooms service URL used by the dashboard client")
    breaker_failure_threshold: int = Field(default=5, description="Consecutive fetch failures before the client fails fast")
    breaker_recovery_seconds: int = Field(default=60, description="Seconds the client fails fast once the breaker opens")

    publish_events: bool = Field(default=True, description="Publish lending/booking events to RabbitMQ")
    event_broker_host: str = Field(default="rabbitmq", description="RabbitMQ host name")
    event_queue: str = Field(default="facility-events", description="Durable queue receiving domain events")

    users_service_port: int = 8001
    rooms_service_port: int = 8002
    schedules_service_port: int = 8003
    bookings_service_port: int = 8004
    equipment_service_port: int = 8005


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
