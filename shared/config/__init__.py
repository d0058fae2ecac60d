"""Shared configuration base classes.

Connection and logging settings are grouped here so the service config only
declares what is specific to snapshot computation.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
    ]
    app_environment: str = "production"
    otel_service_name: str = "unknown"  # overridden by the service


class BaseRedisConfig(BaseSettings):
    """Redis connection used by the snapshot mirror."""

    redis_enabled: bool = False
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    redis_socket_timeout_seconds: float = 2.0
    redis_mirror_timeout_seconds: float = 0.5


class BaseClickHouseConfig(BaseSettings):
    """ClickHouse connection used by the event store adapter."""

    clickhouse_host: str = "clickhouse"
    clickhouse_port: int = 8123
    clickhouse_db: str = "analytics"
    clickhouse_user: str = "admin"
    clickhouse_password: str = "admin"
    clickhouse_events_table: str = "analytics_events"


__all__ = ["BaseLoggingConfig", "BaseRedisConfig", "BaseClickHouseConfig"]
