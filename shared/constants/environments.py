from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    PRODUCTION = "production"
    STAGING = "staging"
    TESTING = "testing"
    DEVELOPMENT = "development"

    @classmethod
    def is_development(cls, env: str) -> bool:
        """Development mode logs in plain text instead of JSON."""
        return env.lower() == cls.DEVELOPMENT.value
