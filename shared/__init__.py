"""Shared utilities used by the analytics snapshot service."""

from .config import BaseClickHouseConfig, BaseLoggingConfig, BaseRedisConfig
from .constants import Environment, RedisKeys

__all__ = [
    "Environment",
    "RedisKeys",
    "BaseLoggingConfig",
    "BaseRedisConfig",
    "BaseClickHouseConfig",
]
