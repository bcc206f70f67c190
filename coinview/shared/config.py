"""
Shared configuration module for CoinView.
All services read their settings from this module.
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List


ALLOWED_LIVE_INTERVALS = (15, 30, 60, 300)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "CoinView"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Upstream services (the only environment contract of the core)
    COINCAP_BASE_URL: str = "https://api.coincap.io/v2"
    COINCAP_API_KEY: str = ""  # Optional bearer token
    AGENT_FINANCE_BASE_URL: str = "http://localhost:8000"

    # HTTP behaviour
    REQUEST_TIMEOUT: float = 10.0  # seconds
    RETRY_ATTEMPTS: int = 3
    RETRY_MAX_DELAY: float = 30.0  # seconds
    CACHE_TIME: int = 300  # seconds
    STALE_TIME: int = 120  # seconds
    ASSET_LIST_LIMIT: int = 100

    # Live updates
    LIVE_UPDATE_ENABLED: bool = True
    LIVE_UPDATE_INTERVAL: int = 30  # seconds
    LIVE_UPDATE_BACKGROUND: bool = True
    POLL_MAX_BACKOFF: int = 300  # seconds

    # Persistence
    STATE_BACKEND: str = "sql"  # "sql" or "redis"
    DATABASE_URL: str = "sqlite:///./coinview.db"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    # Bounded collections
    HISTORY_CAPACITY: int = 50
    SEARCH_HISTORY_LIMIT: int = 10

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('COINCAP_BASE_URL', 'AGENT_FINANCE_BASE_URL')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Base URLs must be http(s) and are stored without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URLs must start with http:// or https://")
        return v.rstrip("/")

    @field_validator('LIVE_UPDATE_INTERVAL')
    @classmethod
    def validate_live_interval(cls, v: int) -> int:
        """Validate live update interval against the supported set."""
        if v not in ALLOWED_LIVE_INTERVALS:
            raise ValueError(
                f"LIVE_UPDATE_INTERVAL must be one of: {', '.join(str(i) for i in ALLOWED_LIVE_INTERVALS)}"
            )
        return v

    @field_validator('STATE_BACKEND')
    @classmethod
    def validate_state_backend(cls, v: str) -> str:
        """Validate persistence backend name."""
        if v.lower() not in ("sql", "redis"):
            raise ValueError("STATE_BACKEND must be one of: sql, redis")
        return v.lower()

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def validate_production_settings(self) -> None:
        """Validate settings for production environment."""
        if self.ENVIRONMENT == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if "localhost" in self.AGENT_FINANCE_BASE_URL:
                raise ValueError("AGENT_FINANCE_BASE_URL must not point to localhost in production")


# Global settings instance
settings = Settings()
