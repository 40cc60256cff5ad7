"""
Configuration Management
Environment-based settings for the portal API, the Supabase data store,
Redis and rate limiting
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

logger = structlog.get_logger(__name__)


class Settings(BaseSettings):
    """Portal API settings"""

    # Service info
    service_name: str = "portal-api"
    service_version: str = "1.0.0"
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: str = "default"
    logging_config_path: Optional[str] = None
    error_log_path: str = "logs/api_errors.log"

    # Supabase (identity provider and REST data store)
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_anon_key: str = ""
    supabase_timeout_seconds: float = 10.0

    # Redis (shared rate-limit counters)
    redis_enabled: bool = True
    redis_host: str = "127.0.0.1"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # Rate limiting
    api_rate_limit: int = 100
    api_rate_window: int = 60
    rate_limit_key_prefix: str = "ratelimit:"

    # CORS (development only)
    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator('app_env')
    @classmethod
    def normalize_env(cls, v):
        return v.strip().lower() or "development"

    @field_validator('api_rate_limit', 'api_rate_window')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError('Rate limit settings must be at least 1')
        return v

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def log_config(self):
        """Log configuration (without sensitive data)"""
        logger.info(
            "Configuration loaded",
            environment=self.app_env,
            supabase_configured=bool(self.supabase_url and self.supabase_service_key),
            redis=f"{self.redis_host}:{self.redis_port}" if self.redis_enabled else "disabled",
            rate_limit=f"{self.api_rate_limit}/{self.api_rate_window}s",
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance"""
    return Settings()
