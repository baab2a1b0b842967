"""Configuration settings for the site assistant chatbot"""
import os
from pydantic_settings import BaseSettings


def detect_environment() -> str:
    """
    Detect current environment from the ENVIRONMENT variable.
    Returns: 'dev', 'staging', or 'prod'
    """
    explicit_env = os.getenv("ENVIRONMENT", "").lower()
    if explicit_env in ("dev", "staging", "prod", "production", "development"):
        if explicit_env == "production":
            return "prod"
        if explicit_env == "development":
            return "dev"
        return explicit_env

    # Local development
    return "dev"


class Settings(BaseSettings):
    """Application settings using Pydantic for validation and environment variable loading"""

    # Application settings
    ENVIRONMENT: str = detect_environment()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    SUPPORT_PHONE: str = "(555) 123-4567"

    # Pipeline toggles
    LEARNING_ENABLED: bool = True
    OPTIMIZATION_ENABLED: bool = True

    # Learning dispatch
    LEARNING_DISPATCH_DELAY_MS: int = 100
    ANALYTICS_DISPATCH_DELAY_MS: int = 50
    LEARNING_QUEUE_MAXSIZE: int = 100
    LEARNING_HISTORY_WINDOW: int = 50

    # Context
    HISTORY_FETCH_LIMIT: int = 20

    # Input limits
    MAX_MESSAGE_LENGTH: int = 1000
    RATE_LIMIT_REQUESTS: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Environment helpers
    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT == "dev"

    class Config:
        # Load from .env file
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
